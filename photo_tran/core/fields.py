"""
Field containers passed between transduction stages.

Each stage of the pipeline consumes one of these containers and returns a new
one; arrays are never modified in place by a later stage.

Array conventions:
- Spatial fields are indexed [row, col, ...] with row 0 at the top.
- Spectral axes are the last axis of the irradiance ([row, col, wave]) and the
  first axis of QE matrices ([wave, channel]).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from photo_tran.core.constants import NOISE_MODES
from photo_tran.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class NoiseMode(Enum):
    """Which noise sources are added to the mean signal."""
    NONE = NOISE_MODES.NONE
    PHOTON_ONLY = NOISE_MODES.PHOTON_ONLY
    PHOTON_AND_ELECTRONIC = NOISE_MODES.PHOTON_AND_ELECTRONIC

    @classmethod
    def parse(cls, value: Union["NoiseMode", str, int, None]) -> "NoiseMode":
        """Convert a config value into a NoiseMode.

        Accepts NoiseMode members, names or values in any case
        ("photon_only", "PHOTON_ONLY", "photonOnly") and the integer noise
        flags 0, 1 and 2.

        Raises:
            ConfigurationError: If the value names no known mode
        """
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        if isinstance(value, (bool, np.bool_)):
            raise ConfigurationError(f"Invalid noise mode: {value!r}")
        if isinstance(value, (int, np.integer)):
            flags = {0: cls.NONE, 1: cls.PHOTON_ONLY, 2: cls.PHOTON_AND_ELECTRONIC}
            if int(value) not in flags:
                raise ConfigurationError(f"Invalid noise flag: {value}")
            return flags[int(value)]

        key = str(value).strip().replace("-", "_").replace(" ", "_").lower()
        compact = key.replace("_", "")
        for mode in cls:
            if compact == mode.value.replace("_", ""):
                return mode
        raise ConfigurationError(f"Invalid noise mode: {value!r}")


def _as_spacing(spacing: Union[float, Sequence[float]]) -> Tuple[float, float]:
    """Normalize a scalar or (dy, dx) spacing to a tuple of positive floats."""
    values = np.atleast_1d(np.asarray(spacing, dtype=float))
    if values.size == 1:
        dy = dx = float(values[0])
    elif values.size == 2:
        dy, dx = float(values[0]), float(values[1])
    else:
        raise ConfigurationError(f"Sample spacing must be a scalar or (dy, dx), got {spacing!r}")
    if not (dy > 0 and dx > 0):
        raise ConfigurationError(f"Sample spacing must be positive, got {spacing!r}")
    return dy, dx


@dataclass
class SpectralField:
    """Spectral irradiance sampled on the optical image grid.

    Attributes:
        photons: Irradiance [photons/(m²·nm·s)] indexed [row, col, wave],
            or None when the optical image carries no photon data
        wavelengths_nm: Wavelength samples [nm], uniformly spaced
        sample_spacing_m: Physical spacing of the optical samples on the
            sensor plane [m], scalar or (dy, dx)
        bin_width_nm: Wavelength bin width [nm]; derived from the sampling
            when omitted
        name: Label used in log messages and metadata
    """
    photons: Optional[np.ndarray]
    wavelengths_nm: np.ndarray
    sample_spacing_m: Union[float, Tuple[float, float]]
    bin_width_nm: Optional[float] = None
    name: str = "optical image"

    def __post_init__(self):
        wave = np.atleast_1d(np.asarray(self.wavelengths_nm, dtype=float))
        if wave.ndim != 1 or wave.size == 0:
            raise ConfigurationError("Optical image wavelengths must be a non-empty 1-D sequence")

        if wave.size > 1:
            steps = np.diff(wave)
            if np.any(steps <= 0):
                raise ConfigurationError("Optical image wavelengths must be strictly increasing")
            if not np.allclose(steps, steps[0], rtol=1e-6, atol=0.0):
                raise ConfigurationError(
                    "Optical image wavelengths must be uniformly spaced "
                    f"(steps range {steps.min():g}-{steps.max():g} nm)"
                )
            derived = float(steps[0])
            if self.bin_width_nm is None:
                self.bin_width_nm = derived
            elif not np.isclose(self.bin_width_nm, derived, rtol=1e-6):
                raise ConfigurationError(
                    f"Bin width {self.bin_width_nm:g} nm does not match wavelength "
                    f"spacing {derived:g} nm"
                )
        elif self.bin_width_nm is None:
            raise ConfigurationError(
                "A single-wavelength optical image needs an explicit bin width"
            )

        self.bin_width_nm = float(self.bin_width_nm)
        if self.bin_width_nm <= 0:
            raise ConfigurationError(f"Bin width must be positive, got {self.bin_width_nm}")

        self.wavelengths_nm = wave
        self.sample_spacing_m = _as_spacing(self.sample_spacing_m)

        if self.photons is not None:
            photons = np.asarray(self.photons, dtype=float)
            if photons.ndim == 2 and wave.size == 1:
                photons = photons[:, :, np.newaxis]
            if photons.ndim != 3:
                raise ConfigurationError(
                    f"Photon data must be [row, col, wave], got shape {photons.shape}"
                )
            if photons.shape[2] != wave.size:
                raise ConfigurationError(
                    f"Photon data has {photons.shape[2]} wavebands but "
                    f"{wave.size} wavelengths were given"
                )
            self.photons = photons

    @property
    def has_photons(self) -> bool:
        """Whether photon-domain irradiance is present."""
        return self.photons is not None

    @property
    def rows(self) -> int:
        return 0 if self.photons is None else self.photons.shape[0]

    @property
    def cols(self) -> int:
        return 0 if self.photons is None else self.photons.shape[1]

    @property
    def n_wavelengths(self) -> int:
        return len(self.wavelengths_nm)

    @property
    def size_m(self) -> Tuple[float, float]:
        """Physical (height, width) of the optical image [m]."""
        dy, dx = self.sample_spacing_m
        return self.rows * dy, self.cols * dx

    @classmethod
    def from_field_of_view(
        cls,
        photons: np.ndarray,
        wavelengths_nm: Sequence[float],
        hfov_deg: float,
        image_distance_m: float,
        bin_width_nm: Optional[float] = None,
        name: str = "optical image",
    ) -> "SpectralField":
        """Create a field whose sample spacing follows from its field of view.

        The image width on the sensor plane is 2·d·tan(hfov/2) and samples
        are square, so the spacing is width / cols.

        Args:
            photons: Irradiance [row, col, wave]
            wavelengths_nm: Wavelength samples [nm]
            hfov_deg: Horizontal field of view [degrees]
            image_distance_m: Distance from the lens to the image plane [m]
            bin_width_nm: Optional explicit bin width [nm]
            name: Field label

        Returns:
            SpectralField
        """
        photons = np.asarray(photons, dtype=float)
        if photons.ndim < 2 or photons.shape[1] == 0:
            raise ConfigurationError("Photon data must have at least one column")
        if not (0 < hfov_deg < 180):
            raise ConfigurationError(f"Field of view must be in (0, 180) degrees, got {hfov_deg}")
        width_m = 2.0 * image_distance_m * np.tan(np.deg2rad(hfov_deg) / 2.0)
        spacing = width_m / photons.shape[1]
        return cls(
            photons=photons,
            wavelengths_nm=wavelengths_nm,
            sample_spacing_m=spacing,
            bin_width_nm=bin_width_nm,
            name=name,
        )

    @classmethod
    def uniform(
        cls,
        flux: Union[float, Sequence[float]],
        wavelengths_nm: Sequence[float],
        shape: Tuple[int, int],
        sample_spacing_m: Union[float, Tuple[float, float]],
        bin_width_nm: Optional[float] = None,
        name: str = "uniform field",
    ) -> "SpectralField":
        """Create a spatially uniform field.

        Args:
            flux: Photon flux per waveband [photons/(m²·nm·s)], scalar
                (same at every wavelength) or one value per wavelength
            wavelengths_nm: Wavelength samples [nm]
            shape: (rows, cols) of the optical grid
            sample_spacing_m: Sample spacing [m]
            bin_width_nm: Bin width [nm]; required for a single wavelength

        Returns:
            SpectralField
        """
        wave = np.atleast_1d(np.asarray(wavelengths_nm, dtype=float))
        spectrum = np.broadcast_to(np.asarray(flux, dtype=float), wave.shape)
        photons = np.empty((shape[0], shape[1], wave.size))
        photons[:] = spectrum
        return cls(
            photons=photons,
            wavelengths_nm=wave,
            sample_spacing_m=sample_spacing_m,
            bin_width_nm=bin_width_nm,
            name=name,
        )


@dataclass
class SpectralResponse:
    """Per-channel quantum efficiency curves.

    Attributes:
        wavelengths_nm: Wavelengths at which the curves are sampled [nm]
        qe: Quantum efficiency [wave, channel]; a 1-D curve is one channel
        channel_names: Unique channel labels, in channel order
    """
    wavelengths_nm: np.ndarray
    qe: np.ndarray
    channel_names: Tuple[str, ...] = ()

    def __post_init__(self):
        wave = np.atleast_1d(np.asarray(self.wavelengths_nm, dtype=float))
        if wave.ndim != 1 or wave.size == 0:
            raise ConfigurationError("Response wavelengths must be a non-empty 1-D sequence")

        qe = np.asarray(self.qe, dtype=float)
        if qe.ndim == 0:
            qe = qe.reshape(1, 1)
        elif qe.ndim == 1:
            qe = qe[:, np.newaxis] if qe.size == wave.size else qe[np.newaxis, :]
        if qe.ndim != 2 or qe.shape[0] != wave.size:
            raise ConfigurationError(
                f"QE matrix shape {np.shape(self.qe)} does not match "
                f"{wave.size} response wavelengths"
            )

        names = tuple(self.channel_names) or tuple(f"channel_{i}" for i in range(qe.shape[1]))
        if len(names) != qe.shape[1]:
            raise ConfigurationError(
                f"{len(names)} channel names given for {qe.shape[1]} QE channels"
            )
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Channel names must be unique: {names}")

        self.wavelengths_nm = wave
        self.qe = qe
        self.channel_names = names

    @property
    def n_channels(self) -> int:
        return self.qe.shape[1]


@dataclass
class AlignedResponse:
    """Quantum efficiency resampled onto an optical image's wavelengths."""
    wavelengths_nm: np.ndarray
    qe: np.ndarray
    channel_names: Tuple[str, ...] = ()

    @property
    def n_channels(self) -> int:
        return self.qe.shape[1]


@dataclass
class CurrentDensityField:
    """Signal current density on the optical grid.

    Attributes:
        data: Current density [A/m²] indexed [row, col, channel]
        strategy: Name of the strategy that produced the field
    """
    data: np.ndarray
    strategy: str = ""

    @property
    def n_channels(self) -> int:
        return self.data.shape[2]


@dataclass
class RegisteredField:
    """Current density resampled onto the sensor's (sub-)pixel grid.

    Attributes:
        data: Current density [A/m²] indexed [row*N, col*N, channel]
        samples_per_pixel: Super-sampling factor N
        mosaicked: True when a colour filter pattern reduced the channels to one
    """
    data: np.ndarray
    samples_per_pixel: int = 1
    mosaicked: bool = False


@dataclass
class SignalField:
    """Final sensor signal.

    The volts array is [row, col] for a single exposure of a single-layer
    sensor. A trailing exposure axis is present when several exposures were
    requested, and a channel axis (before the exposure axis) is present for
    multi-channel sensors without a colour filter pattern.

    Attributes:
        volts: Signal [V], mean or noise-perturbed
        mean_volts: Noise-free mean signal [V] after clipping
        exposure_times_s: Exposure times used, one per frame [s]
        conversion_gain: Conversion gain [V/e-]
        noise_mode: Noise sources applied to produce ``volts``
        has_channel_axis: Whether axis 2 indexes channels
        metadata: Additional information about the computation
    """
    volts: np.ndarray
    mean_volts: np.ndarray
    exposure_times_s: Tuple[float, ...]
    conversion_gain: float
    noise_mode: NoiseMode = NoiseMode.NONE
    has_channel_axis: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_exposures(self) -> int:
        return len(self.exposure_times_s)

    @property
    def is_empty(self) -> bool:
        return self.mean_volts is None or self.mean_volts.size == 0

    @property
    def electrons(self) -> np.ndarray:
        """Signal expressed in electrons."""
        return self.volts / self.conversion_gain

    def frame(self, index: int) -> np.ndarray:
        """Return the signal of one exposure."""
        if self.n_exposures == 1:
            if index not in (0, -1):
                raise IndexError(f"Exposure index {index} out of range for 1 exposure")
            return self.volts
        return self.volts[..., index]

    def with_volts(self, volts: np.ndarray, noise_mode: NoiseMode) -> "SignalField":
        """Copy of this field carrying a different (e.g. noisy) signal."""
        return SignalField(
            volts=volts,
            mean_volts=self.mean_volts,
            exposure_times_s=self.exposure_times_s,
            conversion_gain=self.conversion_gain,
            noise_mode=noise_mode,
            has_channel_axis=self.has_channel_axis,
            metadata=dict(self.metadata),
        )
