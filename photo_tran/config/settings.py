"""
Simulation configuration data structures.

Defines the configuration schema for PhotoTran runs: the sensor (pixel
geometry, spectral response, exposure, sampling, noise), pipeline system
settings and output options.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import json
import yaml

import numpy as np

from photo_tran.core.constants import (
    BULK_ELEMENT_LIMIT,
    DEFAULT_EXPOSURE_S,
    DEFAULT_NUM_THREADS,
    DENSITY_STRATEGIES,
)
from photo_tran.core.errors import ConfigurationError
from photo_tran.core.fields import NoiseMode

OUTPUT_FORMATS = ("json", "csv", "netcdf")


@dataclass
class SystemConfig:
    """Pipeline execution settings.

    Attributes:
        density_strategy: Current density strategy (auto, bulk, accumulate)
        bulk_element_limit: Largest photon array handled by the bulk strategy
        num_threads: Number of CPU threads for the accumulation kernel
    """
    density_strategy: str = DENSITY_STRATEGIES.AUTO
    bulk_element_limit: int = BULK_ELEMENT_LIMIT
    num_threads: int = DEFAULT_NUM_THREADS


@dataclass
class PixelConfig:
    """Pixel array geometry.

    Either ``fill_factor`` (centred square photodetector) or the explicit
    photodetector rectangle may be given; the rectangle wins when both are.

    Attributes:
        pitch_um: Pixel pitch [um]
        rows: Number of pixel rows
        cols: Number of pixel columns
        fill_factor: Photodetector area fraction in (0, 1]
        pd_width_um: Photodetector width [um]
        pd_height_um: Photodetector height [um]
        pd_x_um: Photodetector left edge offset [um] (None = centred)
        pd_y_um: Photodetector top edge offset [um] (None = centred)
        conversion_gain_v_per_e: Conversion gain [V/e-]
        voltage_swing_v: Maximum output voltage [V]
    """
    pitch_um: float = 2.8
    rows: int = 64
    cols: int = 64
    fill_factor: float = 1.0
    pd_width_um: Optional[float] = None
    pd_height_um: Optional[float] = None
    pd_x_um: Optional[float] = None
    pd_y_um: Optional[float] = None
    conversion_gain_v_per_e: float = 1.0e-4
    voltage_swing_v: float = 1.0

    @property
    def has_photodetector_rect(self) -> bool:
        return self.pd_width_um is not None or self.pd_height_um is not None


@dataclass
class SpectralConfig:
    """Sensor spectral response.

    Attributes:
        wavelengths_nm: Wavelengths at which QE is tabulated [nm]
        qe: QE per wavelength (one channel) or [wave][channel] lists
        channel_names: Optional channel labels
        cfa_pattern: Optional colour filter pattern of channel indices
    """
    wavelengths_nm: List[float] = field(default_factory=lambda: [550.0])
    qe: List[Any] = field(default_factory=lambda: [1.0])
    channel_names: List[str] = field(default_factory=list)
    cfa_pattern: Optional[List[List[int]]] = None

    def qe_matrix(self) -> np.ndarray:
        """QE as a [wave, channel] array.

        A single value applies to every wavelength.
        """
        qe = np.asarray(self.qe, dtype=float)
        if qe.ndim == 1:
            if qe.size == 1 and len(self.wavelengths_nm) > 1:
                qe = np.full(len(self.wavelengths_nm), qe[0])
            qe = qe[:, np.newaxis]
        return qe


@dataclass
class ExposureConfig:
    """Exposure settings.

    Attributes:
        integration_time_s: Exposure time [s], or a list for several frames.
            A single value of 0 selects the default exposure.
    """
    integration_time_s: Union[float, List[float]] = DEFAULT_EXPOSURE_S

    def times(self) -> List[float]:
        return [float(t) for t in np.atleast_1d(self.integration_time_s)]


@dataclass
class SamplingConfig:
    """Sub-pixel sampling.

    Attributes:
        samples_per_pixel: Grid samples per pixel along each axis (odd)
    """
    samples_per_pixel: int = 1


@dataclass
class NoiseConfig:
    """Noise settings.

    Attributes:
        mode: none, photon_only or photon_and_electronic (or flag 0/1/2)
        read_noise_v: Read noise std [V]
        dark_voltage_v_per_s: Dark voltage rate [V/s]
        dsnu_sigma_v: Offset fixed pattern noise std [V]
        prnu_sigma: Gain fixed pattern noise std (fraction)
        seed: Random seed
    """
    mode: Union[str, int] = "none"
    read_noise_v: float = 0.0
    dark_voltage_v_per_s: float = 0.0
    dsnu_sigma_v: float = 0.0
    prnu_sigma: float = 0.0
    seed: Optional[int] = None


@dataclass
class OutputConfig:
    """Output format configuration.

    Attributes:
        format: Output file format (json, csv, netcdf)
        output_path: Directory for output files
    """
    format: str = "json"
    output_path: str = "./output"


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Example JSON input:
        {
            "name": "mono-sensor",
            "system": {"density_strategy": "auto", "num_threads": 4},
            "pixel": {"pitch_um": 2.0, "rows": 4, "cols": 4, "fill_factor": 0.5},
            "spectral": {"wavelengths_nm": [550], "qe": [1.0]},
            "exposure": {"integration_time_s": 0.01},
            "sampling": {"samples_per_pixel": 5},
            "noise": {"mode": "none"}
        }
    """
    name: str = "sensor"
    system: SystemConfig = field(default_factory=SystemConfig)
    pixel: PixelConfig = field(default_factory=PixelConfig)
    spectral: SpectralConfig = field(default_factory=SpectralConfig)
    exposure: ExposureConfig = field(default_factory=ExposureConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "SimulationConfig":
        """Create SimulationConfig from a dictionary.

        Missing sections and keys take their defaults.

        Args:
            config_dict: Configuration dictionary

        Returns:
            SimulationConfig instance
        """
        config_dict = config_dict or {}

        sys_dict = config_dict.get("system", {})
        system = SystemConfig(
            density_strategy=sys_dict.get("density_strategy", DENSITY_STRATEGIES.AUTO),
            bulk_element_limit=sys_dict.get("bulk_element_limit", BULK_ELEMENT_LIMIT),
            num_threads=sys_dict.get("num_threads", DEFAULT_NUM_THREADS),
        )

        pix_dict = config_dict.get("pixel", {})
        pixel = PixelConfig(
            pitch_um=pix_dict.get("pitch_um", 2.8),
            rows=pix_dict.get("rows", 64),
            cols=pix_dict.get("cols", 64),
            fill_factor=pix_dict.get("fill_factor", 1.0),
            pd_width_um=pix_dict.get("pd_width_um"),
            pd_height_um=pix_dict.get("pd_height_um"),
            pd_x_um=pix_dict.get("pd_x_um"),
            pd_y_um=pix_dict.get("pd_y_um"),
            conversion_gain_v_per_e=pix_dict.get("conversion_gain_v_per_e", 1.0e-4),
            voltage_swing_v=pix_dict.get("voltage_swing_v", 1.0),
        )

        spec_dict = config_dict.get("spectral", {})
        qe = spec_dict.get("qe", [1.0])
        spectral = SpectralConfig(
            wavelengths_nm=[float(w) for w in np.atleast_1d(spec_dict.get("wavelengths_nm", [550.0]))],
            qe=list(qe) if isinstance(qe, (list, tuple)) else [qe],
            channel_names=list(spec_dict.get("channel_names", [])),
            cfa_pattern=spec_dict.get("cfa_pattern"),
        )

        exp_dict = config_dict.get("exposure", {})
        exposure = ExposureConfig(
            integration_time_s=exp_dict.get("integration_time_s", DEFAULT_EXPOSURE_S),
        )

        samp_dict = config_dict.get("sampling", {})
        sampling = SamplingConfig(
            samples_per_pixel=samp_dict.get("samples_per_pixel", 1),
        )

        noise_dict = config_dict.get("noise", {})
        noise = NoiseConfig(
            mode=noise_dict.get("mode", "none"),
            read_noise_v=noise_dict.get("read_noise_v", 0.0),
            dark_voltage_v_per_s=noise_dict.get("dark_voltage_v_per_s", 0.0),
            dsnu_sigma_v=noise_dict.get("dsnu_sigma_v", 0.0),
            prnu_sigma=noise_dict.get("prnu_sigma", 0.0),
            seed=noise_dict.get("seed"),
        )

        out_dict = config_dict.get("output", {})
        output = OutputConfig(
            format=out_dict.get("format", "json"),
            output_path=out_dict.get("output_path", "./output"),
        )

        return cls(
            name=config_dict.get("name", "sensor"),
            system=system,
            pixel=pixel,
            spectral=spectral,
            exposure=exposure,
            sampling=sampling,
            noise=noise,
            output=output,
        )

    @classmethod
    def from_json(cls, json_path: str) -> "SimulationConfig":
        """Load configuration from a JSON file.

        Args:
            json_path: Path to JSON configuration file

        Returns:
            SimulationConfig instance
        """
        with open(json_path, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "SimulationConfig":
        """Load configuration from a YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            SimulationConfig instance
        """
        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Configuration as nested dictionary
        """
        return {
            "name": self.name,
            "system": {
                "density_strategy": self.system.density_strategy,
                "bulk_element_limit": self.system.bulk_element_limit,
                "num_threads": self.system.num_threads,
            },
            "pixel": {
                "pitch_um": self.pixel.pitch_um,
                "rows": self.pixel.rows,
                "cols": self.pixel.cols,
                "fill_factor": self.pixel.fill_factor,
                "pd_width_um": self.pixel.pd_width_um,
                "pd_height_um": self.pixel.pd_height_um,
                "pd_x_um": self.pixel.pd_x_um,
                "pd_y_um": self.pixel.pd_y_um,
                "conversion_gain_v_per_e": self.pixel.conversion_gain_v_per_e,
                "voltage_swing_v": self.pixel.voltage_swing_v,
            },
            "spectral": {
                "wavelengths_nm": [float(w) for w in self.spectral.wavelengths_nm],
                "qe": list(self.spectral.qe),
                "channel_names": list(self.spectral.channel_names),
                "cfa_pattern": self.spectral.cfa_pattern,
            },
            "exposure": {
                "integration_time_s": self.exposure.integration_time_s,
            },
            "sampling": {
                "samples_per_pixel": self.sampling.samples_per_pixel,
            },
            "noise": {
                "mode": self.noise.mode,
                "read_noise_v": self.noise.read_noise_v,
                "dark_voltage_v_per_s": self.noise.dark_voltage_v_per_s,
                "dsnu_sigma_v": self.noise.dsnu_sigma_v,
                "prnu_sigma": self.noise.prnu_sigma,
                "seed": self.noise.seed,
            },
            "output": {
                "format": self.output.format,
                "output_path": self.output.output_path,
            },
        }

    def to_json(self, json_path: str, indent: int = 2) -> None:
        """Save configuration to JSON file.

        Args:
            json_path: Output file path
            indent: JSON indentation level
        """
        with open(json_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=indent)

    def validate(self) -> list:
        """Validate configuration parameters.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        # System
        valid_strategies = [
            DENSITY_STRATEGIES.AUTO, DENSITY_STRATEGIES.BULK, DENSITY_STRATEGIES.ACCUMULATE,
        ]
        if str(self.system.density_strategy).lower() not in valid_strategies:
            errors.append(f"Invalid density strategy: {self.system.density_strategy}")
        if self.system.bulk_element_limit < 0:
            errors.append("bulk_element_limit must be non-negative")
        if self.system.num_threads < 1:
            errors.append("num_threads must be at least 1")

        # Pixel geometry
        pixel = self.pixel
        if pixel.pitch_um <= 0:
            errors.append("pixel pitch must be positive")
        if pixel.rows < 1 or pixel.cols < 1:
            errors.append("pixel array must have at least one row and column")
        if pixel.has_photodetector_rect:
            width = pixel.pd_width_um if pixel.pd_width_um is not None else pixel.pitch_um
            height = pixel.pd_height_um if pixel.pd_height_um is not None else pixel.pitch_um
            if width <= 0 or height <= 0:
                errors.append("photodetector width and height must be positive")
            elif width > pixel.pitch_um or height > pixel.pitch_um:
                errors.append("photodetector must fit inside the pixel")
        elif not 0 < pixel.fill_factor <= 1:
            errors.append("fill factor must be in (0, 1]")
        if pixel.conversion_gain_v_per_e <= 0:
            errors.append("conversion gain must be positive")
        if pixel.voltage_swing_v <= 0:
            errors.append("voltage swing must be positive")

        # Spectral response
        n_wave = len(self.spectral.wavelengths_nm)
        if n_wave == 0:
            errors.append("at least one QE wavelength is required")
        try:
            qe = self.spectral.qe_matrix()
        except ValueError:
            errors.append("QE rows must all have the same number of channels")
            qe = None
        if qe is not None:
            if qe.ndim != 2 or qe.shape[0] != n_wave:
                errors.append(
                    f"QE has {qe.shape[0] if qe.ndim else 0} rows for {n_wave} wavelengths"
                )
            elif np.any(qe < 0):
                errors.append("QE values must be non-negative")
            else:
                n_channels = qe.shape[1]
                names = self.spectral.channel_names
                if names and len(names) != n_channels:
                    errors.append(f"{len(names)} channel names given for {n_channels} channels")
                if self.spectral.cfa_pattern is not None:
                    pattern = np.asarray(self.spectral.cfa_pattern)
                    if pattern.ndim != 2 or pattern.size == 0:
                        errors.append("cfa_pattern must be a non-empty 2-D list")
                    elif pattern.min() < 0 or pattern.max() >= n_channels:
                        errors.append(f"cfa_pattern indices must be in 0..{n_channels - 1}")

        # Exposure
        times = self.exposure.times()
        if not times:
            errors.append("at least one integration time is required")
        elif any(t < 0 for t in times):
            errors.append("integration times must be non-negative")

        # Sampling
        n = self.sampling.samples_per_pixel
        if not isinstance(n, int) or isinstance(n, bool) or n < 1 or n % 2 == 0:
            errors.append(f"samples_per_pixel must be a positive odd integer, got {n!r}")

        # Noise
        try:
            NoiseMode.parse(self.noise.mode)
        except ConfigurationError as e:
            errors.append(str(e))
        for name in ("read_noise_v", "dark_voltage_v_per_s", "dsnu_sigma_v", "prnu_sigma"):
            if getattr(self.noise, name) < 0:
                errors.append(f"{name} must be non-negative")

        # Output
        if self.output.format.lower() not in OUTPUT_FORMATS:
            errors.append(f"Invalid output format: {self.output.format}")

        return errors
