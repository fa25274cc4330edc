"""
PhotoTran: optical-to-electrical transduction for image sensor simulation.

Turns a spectral irradiance field on the sensor plane into per-pixel
voltages: QE-weighted spectral integration, registration onto the pixel
grid, photodetector aperture weighting, exposure scaling, relative
illumination, clipping and optional sensor noise.

Modules
-------
core
    Data containers, sensor description and the transduction stages
config
    Configuration schema, loading and validation
utils
    Output formatting (JSON, CSV, NetCDF)
"""

__version__ = "0.1.0"
__author__ = "PhotoTran Contributors"

from photo_tran.core import (
    ComputationFailure,
    ConfigurationError,
    MissingDataError,
    NoiseMode,
    SensorDescription,
    SignalField,
    SpectralField,
    TransductionError,
    TransductionPipeline,
    compute_signal,
)
from photo_tran.core.simulation import Simulation, SimulationResult

__all__ = [
    "__version__",
    "compute_signal",
    "TransductionPipeline",
    "Simulation",
    "SimulationResult",
    "SpectralField",
    "SensorDescription",
    "SignalField",
    "NoiseMode",
    "TransductionError",
    "ConfigurationError",
    "MissingDataError",
    "ComputationFailure",
]
