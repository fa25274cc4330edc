"""
Configuration management for PhotoTran simulations.

This module provides:
- SimulationConfig: Data class for simulation parameters
- ConfigurationManager: Loading and validation of configurations
- build_sensor: SensorDescription construction from a configuration
"""

from photo_tran.config.settings import SimulationConfig
from photo_tran.config.manager import ConfigurationManager, LoadedConfiguration, build_sensor

__all__ = [
    "SimulationConfig",
    "ConfigurationManager",
    "LoadedConfiguration",
    "build_sensor",
]
