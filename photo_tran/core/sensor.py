"""
Sensor description consumed by the transduction pipeline.

The geometry here is supplied by an external sensor-construction step; this
module only holds and validates it:
- PixelGrid: pixel pitch, array size, photodetector placement, conversion gain
- SamplingSpec: sub-pixel super-sampling factor
- NoiseParameters: parameters of the default noise model
- SensorDescription: everything above plus QE curves, exposures, etendue
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from photo_tran.core.constants import DEFAULT_EXPOSURE_S, NUMERICAL_EPSILON
from photo_tran.core.errors import ConfigurationError
from photo_tran.core.fields import NoiseMode, SpectralResponse

logger = logging.getLogger(__name__)


@dataclass
class PhotodetectorGeometry:
    """Light-sensitive rectangle inside a pixel.

    Attributes:
        width_m: Photodetector width [m]
        height_m: Photodetector height [m]
        x_m: Offset of the left edge from the pixel's left edge [m];
            None centres the photodetector horizontally
        y_m: Offset of the top edge from the pixel's top edge [m];
            None centres the photodetector vertically
    """
    width_m: float
    height_m: float
    x_m: Optional[float] = None
    y_m: Optional[float] = None


@dataclass
class PixelGrid:
    """Pixel array geometry and electrical conversion.

    Attributes:
        pitch_m: Pixel width (and spacing) [m]
        size: Array size (rows, cols)
        photodetector: Photodetector rectangle; None means the whole pixel
        conversion_gain_v_per_e: Volts per electron [V/e-]
        voltage_swing_v: Maximum output voltage [V]
        height_m: Pixel height [m]; defaults to the pitch (square pixels)
    """
    pitch_m: float
    size: Tuple[int, int]
    photodetector: Optional[PhotodetectorGeometry] = None
    conversion_gain_v_per_e: float = 1.0e-4
    voltage_swing_v: float = 1.0
    height_m: Optional[float] = None

    def __post_init__(self):
        if not self.pitch_m > 0:
            raise ConfigurationError(f"Pixel pitch must be positive, got {self.pitch_m}")
        if self.height_m is None:
            self.height_m = self.pitch_m
        if not self.height_m > 0:
            raise ConfigurationError(f"Pixel height must be positive, got {self.height_m}")

        if len(self.size) != 2:
            raise ConfigurationError(f"Array size must be (rows, cols), got {self.size}")
        rows, cols = (int(n) for n in self.size)
        if rows <= 0 or cols <= 0 or rows != self.size[0] or cols != self.size[1]:
            raise ConfigurationError(f"Array size must be positive integers, got {self.size}")
        self.size = (rows, cols)

        if self.photodetector is None:
            self.photodetector = PhotodetectorGeometry(self.pitch_m, self.height_m, 0.0, 0.0)
        pd = self.photodetector
        if pd.width_m <= 0 or pd.height_m <= 0:
            raise ConfigurationError("Photodetector width and height must be positive")
        tol = NUMERICAL_EPSILON * self.pitch_m
        if pd.width_m > self.pitch_m + tol or pd.height_m > self.height_m + tol:
            raise ConfigurationError("Photodetector is larger than the pixel")
        if (self.pd_x_m < -tol or self.pd_x_m + pd.width_m > self.pitch_m + tol
                or self.pd_y_m < -tol or self.pd_y_m + pd.height_m > self.height_m + tol):
            raise ConfigurationError("Photodetector extends outside the pixel")

        if not self.conversion_gain_v_per_e > 0:
            raise ConfigurationError(
                f"Conversion gain must be positive, got {self.conversion_gain_v_per_e}"
            )
        if not self.voltage_swing_v > 0:
            raise ConfigurationError(f"Voltage swing must be positive, got {self.voltage_swing_v}")

    @classmethod
    def with_fill_factor(
        cls,
        pitch_m: float,
        size: Tuple[int, int],
        fill_factor: float,
        **kwargs,
    ) -> "PixelGrid":
        """Create a square pixel with a centred square photodetector.

        Args:
            pitch_m: Pixel pitch [m]
            size: Array size (rows, cols)
            fill_factor: Photodetector area / pixel area, in (0, 1]
            **kwargs: Remaining PixelGrid fields

        Returns:
            PixelGrid
        """
        if not 0 < fill_factor <= 1:
            raise ConfigurationError(f"Fill factor must be in (0, 1], got {fill_factor}")
        side = pitch_m * np.sqrt(fill_factor)
        return cls(
            pitch_m=pitch_m,
            size=size,
            photodetector=PhotodetectorGeometry(side, side),
            **kwargs,
        )

    @property
    def rows(self) -> int:
        return self.size[0]

    @property
    def cols(self) -> int:
        return self.size[1]

    @property
    def pd_x_m(self) -> float:
        """Left edge of the photodetector relative to the pixel [m]."""
        pd = self.photodetector
        return (self.pitch_m - pd.width_m) / 2.0 if pd.x_m is None else pd.x_m

    @property
    def pd_y_m(self) -> float:
        """Top edge of the photodetector relative to the pixel [m]."""
        pd = self.photodetector
        return (self.height_m - pd.height_m) / 2.0 if pd.y_m is None else pd.y_m

    @property
    def pixel_area_m2(self) -> float:
        return self.pitch_m * self.height_m

    @property
    def photodetector_area_m2(self) -> float:
        return self.photodetector.width_m * self.photodetector.height_m

    @property
    def fill_factor(self) -> float:
        """Fraction of the pixel area that is light sensitive."""
        return self.photodetector_area_m2 / self.pixel_area_m2


@dataclass
class SamplingSpec:
    """Sub-pixel sampling used during spatial integration.

    Attributes:
        samples_per_pixel: Grid samples per pixel along each axis (N); a
            positive odd integer so that the centre sample of every pixel
            falls on the pixel centre. N = 1 is the default, unsampled mode.
    """
    samples_per_pixel: int = 1

    def __post_init__(self):
        n = self.samples_per_pixel
        if isinstance(n, (bool, np.bool_)) or not float(n).is_integer():
            raise ConfigurationError(f"Samples per pixel must be an integer, got {n!r}")
        n = int(n)
        if n < 1 or n % 2 == 0:
            raise ConfigurationError(f"Samples per pixel must be a positive odd integer, got {n}")
        self.samples_per_pixel = n

    @property
    def grid_spacing(self) -> float:
        """Grid spacing as a fraction of the pixel pitch (1/N)."""
        return 1.0 / self.samples_per_pixel

    @property
    def is_supersampled(self) -> bool:
        return self.samples_per_pixel > 1

    @classmethod
    def from_grid_spacing(cls, grid_spacing: float) -> "SamplingSpec":
        """Create from a fractional spacing such as 0.2 (= 1/5)."""
        if not grid_spacing > 0:
            raise ConfigurationError(f"Grid spacing must be positive, got {grid_spacing}")
        return cls(samples_per_pixel=int(round(1.0 / grid_spacing)))


@dataclass
class NoiseParameters:
    """Parameters of the default sensor noise model.

    Attributes:
        read_noise_v: Read noise standard deviation [V]
        dark_voltage_v_per_s: Dark voltage accumulation rate [V/s]
        dsnu_sigma_v: Dark signal non-uniformity, offset std [V]
        prnu_sigma: Photo-response non-uniformity, fractional gain std
        seed: Random seed (None for non-deterministic draws)
    """
    read_noise_v: float = 0.0
    dark_voltage_v_per_s: float = 0.0
    dsnu_sigma_v: float = 0.0
    prnu_sigma: float = 0.0
    seed: Optional[int] = None

    def __post_init__(self):
        for name in ("read_noise_v", "dark_voltage_v_per_s", "dsnu_sigma_v", "prnu_sigma"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be non-negative, got {getattr(self, name)}")


@dataclass
class SensorDescription:
    """Everything the pipeline needs to know about the sensor.

    Attributes:
        pixel: Pixel array geometry
        response: Per-channel spectral QE (before alignment)
        sampling: Sub-pixel sampling
        noise_mode: Noise sources to add
        integration_times_s: One exposure time per output frame [s]; a scalar
            is promoted to a one-element tuple
        etendue: Relative illumination map [rows, cols]; ones when None
        cfa_pattern: Colour filter pattern of channel indices, tiled over the
            array; None keeps every channel at every pixel
        noise: Parameters for the default noise model
        name: Label used in log messages and metadata
    """
    pixel: PixelGrid
    response: SpectralResponse
    sampling: SamplingSpec = field(default_factory=SamplingSpec)
    noise_mode: Union[NoiseMode, str, int] = NoiseMode.NONE
    integration_times_s: Union[float, Sequence[float]] = (DEFAULT_EXPOSURE_S,)
    etendue: Optional[np.ndarray] = None
    cfa_pattern: Optional[np.ndarray] = None
    noise: NoiseParameters = field(default_factory=NoiseParameters)
    name: str = "sensor"

    def __post_init__(self):
        self.noise_mode = NoiseMode.parse(self.noise_mode)

        times = np.atleast_1d(np.asarray(self.integration_times_s, dtype=float)).ravel()
        if times.size == 0:
            raise ConfigurationError("At least one integration time is required")
        if not np.all(np.isfinite(times)) or np.any(times < 0):
            raise ConfigurationError(f"Integration times must be finite and >= 0, got {times}")
        self.integration_times_s = tuple(float(t) for t in times)

        if self.etendue is not None:
            etendue = np.asarray(self.etendue, dtype=float)
            if etendue.shape != self.pixel.size:
                raise ConfigurationError(
                    f"Etendue map shape {etendue.shape} does not match sensor size {self.pixel.size}"
                )
            self.etendue = etendue

        if self.cfa_pattern is not None:
            pattern = np.atleast_2d(np.asarray(self.cfa_pattern))
            if pattern.ndim != 2 or not np.issubdtype(pattern.dtype, np.integer):
                raise ConfigurationError("Colour filter pattern must be a 2-D array of channel indices")
            if pattern.min() < 0 or pattern.max() >= self.response.n_channels:
                raise ConfigurationError(
                    f"Colour filter pattern refers to channels outside 0..{self.response.n_channels - 1}"
                )
            self.cfa_pattern = pattern

    @property
    def n_channels(self) -> int:
        return self.response.n_channels

    def etendue_map(self) -> np.ndarray:
        """Relative illumination per pixel [rows, cols]."""
        if self.etendue is None:
            return np.ones(self.pixel.size)
        return self.etendue

    def cfa_map(self) -> Optional[np.ndarray]:
        """Channel index of every pixel [rows, cols], or None without a pattern."""
        if self.cfa_pattern is None:
            return None
        rows, cols = self.pixel.size
        block_rows, block_cols = self.cfa_pattern.shape
        reps = (-(-rows // block_rows), -(-cols // block_cols))
        return np.tile(self.cfa_pattern, reps)[:rows, :cols]
