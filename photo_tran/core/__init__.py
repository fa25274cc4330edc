"""
Core computational modules for PhotoTran sensor transduction.

This module contains the pipeline stages:
- SpectralResponseAligner: QE resampling onto the optical image wavelengths
- CurrentDensityEstimator: Irradiance to signal current density
- GridRegistrar: Optical grid to sensor grid resampling
- ApertureWeighter / FilterDecimator: Spatial integration over each pixel
- RadiometricConverter: Current to volts
- NoiseOrchestrator: Optional sensor noise
- TransductionPipeline: All of the above in order
"""

from photo_tran.core.aperture import ApertureWeighter, FilterDecimator
from photo_tran.core.current_density import CurrentDensityEstimator
from photo_tran.core.errors import (
    ComputationFailure,
    ConfigurationError,
    MissingDataError,
    TransductionError,
)
from photo_tran.core.fields import NoiseMode, SignalField, SpectralField, SpectralResponse
from photo_tran.core.noise import NoiseModel, NoiseOrchestrator, SensorNoiseModel
from photo_tran.core.pipeline import TransductionPipeline, compute_signal
from photo_tran.core.radiometry import RadiometricConverter
from photo_tran.core.registration import GridRegistrar
from photo_tran.core.sensor import (
    NoiseParameters,
    PhotodetectorGeometry,
    PixelGrid,
    SamplingSpec,
    SensorDescription,
)
from photo_tran.core.spectral import SpectralResponseAligner

__all__ = [
    "ApertureWeighter",
    "FilterDecimator",
    "CurrentDensityEstimator",
    "GridRegistrar",
    "RadiometricConverter",
    "NoiseModel",
    "NoiseOrchestrator",
    "SensorNoiseModel",
    "SpectralResponseAligner",
    "TransductionPipeline",
    "compute_signal",
    "NoiseMode",
    "SignalField",
    "SpectralField",
    "SpectralResponse",
    "NoiseParameters",
    "PhotodetectorGeometry",
    "PixelGrid",
    "SamplingSpec",
    "SensorDescription",
    "TransductionError",
    "ConfigurationError",
    "MissingDataError",
    "ComputationFailure",
]
