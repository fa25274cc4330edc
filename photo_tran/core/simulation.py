"""
Main Simulation class for PhotoTran sensor transduction runs.

Provides a high-level interface that orchestrates all components:
- Configuration management
- Sensor description construction
- Transduction pipeline
- Output formatting
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from photo_tran.config.manager import ConfigurationManager
from photo_tran.config.settings import SimulationConfig
from photo_tran.core.errors import ConfigurationError
from photo_tran.core.fields import SignalField, SpectralField
from photo_tran.core.noise import NoiseModel
from photo_tran.core.pipeline import ProgressCallback, TransductionPipeline

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Complete simulation results.

    Attributes:
        signal: Computed sensor signal
        config: Configuration used for the simulation
        metadata: Additional metadata about the simulation
    """
    signal: SignalField
    config: SimulationConfig
    metadata: Dict[str, Any]

    @property
    def volts(self) -> np.ndarray:
        return self.signal.volts

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            "volts": self.signal.volts.tolist(),
            "mean_volts": self.signal.mean_volts.tolist(),
            "exposure_times_s": list(self.signal.exposure_times_s),
            "metadata": self.metadata,
        }


class Simulation:
    """High-level simulation interface for PhotoTran.

    Example:
        >>> from photo_tran import Simulation
        >>> sim = Simulation({
        ...     "pixel": {"pitch_um": 2.0, "rows": 4, "cols": 4, "fill_factor": 0.5},
        ...     "spectral": {"wavelengths_nm": [550], "qe": [1.0]},
        ... })
        >>> field = Simulation.uniform_field(1e18, [550], shape=(32, 32), sample_spacing_m=0.5e-6,
        ...                                  bin_width_nm=10)
        >>> result = sim.run(field)
        >>> print(f"Mean signal: {result.volts.mean():.3f} V")
    """

    def __init__(
        self,
        config: Union[Dict[str, Any], str, SimulationConfig],
        noise_model: Optional[NoiseModel] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        """Initialize the simulation.

        Args:
            config: Configuration dictionary, JSON/YAML path, or SimulationConfig
            noise_model: Optional noise model replacing SensorNoiseModel
            progress: Optional callback receiving (fraction, message)

        Raises:
            ConfigurationError: If the configuration does not validate
        """
        self.config_manager = ConfigurationManager()

        if not isinstance(config, (dict, str, Path, SimulationConfig)):
            raise TypeError(f"Invalid config type: {type(config)}")

        loaded = self.config_manager.load_config(config)
        if not loaded.is_valid:
            raise ConfigurationError(
                "Invalid configuration: " + "; ".join(loaded.validation_errors)
            )
        self.config = loaded.config
        self.sensor = loaded.sensor
        self.noise_model = noise_model
        self.progress = progress

        # Initialize pipeline lazily
        self._pipeline = None

    @property
    def pipeline(self) -> TransductionPipeline:
        """Get or create the transduction pipeline (lazy initialization)."""
        if self._pipeline is None:
            self._pipeline = TransductionPipeline(
                strategy=self.config.system.density_strategy,
                bulk_element_limit=self.config.system.bulk_element_limit,
                noise_model=self.noise_model,
                progress=self.progress,
                num_threads=self.config.system.num_threads,
            )
        return self._pipeline

    def run(self, optical_image: SpectralField) -> SimulationResult:
        """Run the transduction simulation.

        Args:
            optical_image: Spectral irradiance on the optical grid

        Returns:
            SimulationResult with the computed signal
        """
        logger.info(
            f"Running simulation: {self.sensor.name}, "
            f"{self.sensor.pixel.rows}x{self.sensor.pixel.cols} pixels, "
            f"N={self.sensor.sampling.samples_per_pixel}"
        )

        signal = self.pipeline.run(optical_image, self.sensor)

        metadata = {
            **signal.metadata,
            "pixel_pitch_um": self.config.pixel.pitch_um,
            "conversion_gain_v_per_e": self.sensor.pixel.conversion_gain_v_per_e,
            "exposure_times_s": list(signal.exposure_times_s),
            "wavelengths_nm": optical_image.wavelengths_nm.tolist(),
            "optical_spacing_m": list(optical_image.sample_spacing_m),
        }

        return SimulationResult(signal=signal, config=self.config, metadata=metadata)

    def save_result(
        self,
        result: SimulationResult,
        output_path: Optional[str] = None,
        format: Optional[str] = None,
    ) -> str:
        """Save simulation result to file.

        Args:
            result: SimulationResult to save
            output_path: Output file path (defaults to config setting)
            format: Output format (csv, json, netcdf)

        Returns:
            Path to saved file
        """
        from photo_tran.utils.output import OutputFormatter

        if format is None:
            format = self.config.output.format

        if output_path is None:
            output_dir = Path(self.config.output.output_path)
            output_dir.mkdir(parents=True, exist_ok=True)
            suffix = "nc" if format == "netcdf" else format
            output_path = str(output_dir / f"signal_result.{suffix}")

        formatter = OutputFormatter()
        return formatter.save(result, output_path, format)

    @staticmethod
    def uniform_field(
        flux: Union[float, Sequence[float]],
        wavelengths_nm: Sequence[float],
        shape: Tuple[int, int] = (64, 64),
        sample_spacing_m: float = 1.0e-6,
        bin_width_nm: Optional[float] = None,
    ) -> SpectralField:
        """Spatially uniform optical image for tests and quick runs.

        Args:
            flux: Photons/(m²·nm·s), scalar or one value per wavelength
            wavelengths_nm: Wavelength samples [nm]
            shape: Optical grid (rows, cols)
            sample_spacing_m: Optical sample spacing [m]
            bin_width_nm: Bin width [nm]; required for one wavelength

        Returns:
            SpectralField
        """
        return SpectralField.uniform(
            flux,
            wavelengths_nm,
            shape=shape,
            sample_spacing_m=sample_spacing_m,
            bin_width_nm=bin_width_nm,
        )
