"""
Configuration Manager for PhotoTran simulations.

Handles loading and validation of simulation configurations and builds the
SensorDescription consumed by the transduction pipeline.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass

from photo_tran.config.settings import SimulationConfig
from photo_tran.core.constants import UM_TO_M
from photo_tran.core.errors import ConfigurationError
from photo_tran.core.fields import SpectralResponse
from photo_tran.core.sensor import (
    NoiseParameters,
    PhotodetectorGeometry,
    PixelGrid,
    SamplingSpec,
    SensorDescription,
)

logger = logging.getLogger(__name__)


@dataclass
class LoadedConfiguration:
    """Container for a loaded and validated configuration.

    Attributes:
        config: The simulation configuration settings
        sensor: Sensor built from the configuration (None when invalid)
        is_valid: Whether the configuration passed validation
        validation_errors: List of validation error messages
    """
    config: SimulationConfig
    sensor: Optional[SensorDescription]
    is_valid: bool
    validation_errors: list


def build_sensor(config: SimulationConfig) -> SensorDescription:
    """Build a SensorDescription from a configuration.

    Args:
        config: Simulation configuration (micrometre lengths)

    Returns:
        SensorDescription (SI lengths)

    Raises:
        ConfigurationError: If the values describe no valid sensor
    """
    pix = config.pixel
    pitch_m = pix.pitch_um * UM_TO_M
    size = (pix.rows, pix.cols)
    electrical = dict(
        conversion_gain_v_per_e=pix.conversion_gain_v_per_e,
        voltage_swing_v=pix.voltage_swing_v,
    )

    if pix.has_photodetector_rect:
        width_um = pix.pd_width_um if pix.pd_width_um is not None else pix.pitch_um
        height_um = pix.pd_height_um if pix.pd_height_um is not None else pix.pitch_um
        photodetector = PhotodetectorGeometry(
            width_m=width_um * UM_TO_M,
            height_m=height_um * UM_TO_M,
            x_m=None if pix.pd_x_um is None else pix.pd_x_um * UM_TO_M,
            y_m=None if pix.pd_y_um is None else pix.pd_y_um * UM_TO_M,
        )
        pixel = PixelGrid(pitch_m=pitch_m, size=size, photodetector=photodetector, **electrical)
    else:
        pixel = PixelGrid.with_fill_factor(pitch_m, size, pix.fill_factor, **electrical)

    response = SpectralResponse(
        wavelengths_nm=config.spectral.wavelengths_nm,
        qe=config.spectral.qe_matrix(),
        channel_names=tuple(config.spectral.channel_names),
    )

    noise = NoiseParameters(
        read_noise_v=config.noise.read_noise_v,
        dark_voltage_v_per_s=config.noise.dark_voltage_v_per_s,
        dsnu_sigma_v=config.noise.dsnu_sigma_v,
        prnu_sigma=config.noise.prnu_sigma,
        seed=config.noise.seed,
    )

    return SensorDescription(
        pixel=pixel,
        response=response,
        sampling=SamplingSpec(config.sampling.samples_per_pixel),
        noise_mode=config.noise.mode,
        integration_times_s=config.exposure.times(),
        cfa_pattern=config.spectral.cfa_pattern,
        noise=noise,
        name=config.name,
    )


class ConfigurationManager:
    """Manages simulation configurations.

    This class handles:
    - Loading configurations from JSON/YAML/dict
    - Validating configuration values
    - Building the sensor description

    Example:
        >>> manager = ConfigurationManager()
        >>> loaded = manager.load_config({
        ...     "pixel": {"pitch_um": 2.0, "rows": 4, "cols": 4},
        ...     "spectral": {"wavelengths_nm": [550], "qe": [1.0]}
        ... })
        >>> if loaded.is_valid:
        ...     print(f"Sensor fill factor {loaded.sensor.pixel.fill_factor:.2f}")
    """

    def __init__(self, base_path: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            base_path: Base path for relative file references.
                      Defaults to current working directory.
        """
        self.base_path = Path(base_path) if base_path else Path.cwd()

    def load_config(
        self,
        config_source: Dict[str, Any] | str | SimulationConfig,
    ) -> LoadedConfiguration:
        """Load and validate a complete configuration.

        Args:
            config_source: Configuration dictionary, JSON path, YAML path or
                SimulationConfig

        Returns:
            LoadedConfiguration with parsed config and sensor
        """
        if isinstance(config_source, SimulationConfig):
            config = config_source
        elif isinstance(config_source, dict):
            config = SimulationConfig.from_dict(config_source)
        elif isinstance(config_source, (str, Path)):
            path = self.resolve_path(str(config_source))
            if path.suffix.lower() == '.json':
                config = SimulationConfig.from_json(str(path))
            elif path.suffix.lower() in ('.yaml', '.yml'):
                config = SimulationConfig.from_yaml(str(path))
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")
            logger.info(f"Loaded configuration from {path}")
        else:
            raise TypeError(f"Invalid config source type: {type(config_source)}")

        validation_errors = config.validate()

        sensor = None
        if not validation_errors:
            try:
                sensor = build_sensor(config)
            except ConfigurationError as e:
                validation_errors.append(f"Sensor construction failed: {e}")

        is_valid = len(validation_errors) == 0

        if not is_valid:
            for error in validation_errors:
                logger.warning(f"Configuration validation error: {error}")

        return LoadedConfiguration(
            config=config,
            sensor=sensor,
            is_valid=is_valid,
            validation_errors=validation_errors,
        )

    def resolve_path(self, path: str) -> Path:
        """Resolve a path relative to base_path.

        Args:
            path: Relative or absolute path string

        Returns:
            Resolved absolute Path
        """
        p = Path(path)
        if p.is_absolute():
            return p
        return (self.base_path / p).resolve()

    @staticmethod
    def create_example_config() -> Dict[str, Any]:
        """Create an example configuration dictionary.

        A 4x4 monochrome sensor with 2 um pixels, half fill factor and
        5x5 sub-pixel sampling.

        Returns:
            Example configuration
        """
        return {
            "name": "example-sensor",
            "system": {
                "density_strategy": "auto",
                "num_threads": 4,
            },
            "pixel": {
                "pitch_um": 2.0,
                "rows": 4,
                "cols": 4,
                "fill_factor": 0.5,
                "conversion_gain_v_per_e": 1.0e-4,
                "voltage_swing_v": 1.0,
            },
            "spectral": {
                "wavelengths_nm": [550.0],
                "qe": [1.0],
                "channel_names": ["mono"],
            },
            "exposure": {
                "integration_time_s": 0.01,
            },
            "sampling": {
                "samples_per_pixel": 5,
            },
            "noise": {
                "mode": "none",
                "seed": 42,
            },
            "output": {
                "format": "json",
                "output_path": "./output",
            },
        }

    def save_example_config(self, output_path: str) -> None:
        """Save an example configuration file.

        Args:
            output_path: Path to save the example JSON
        """
        example = self.create_example_config()
        with open(output_path, 'w') as f:
            json.dump(example, f, indent=2)
        logger.info(f"Saved example configuration to {output_path}")
