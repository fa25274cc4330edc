"""
Physical constants and standard values for sensor transduction calculations.

All units are in SI unless otherwise noted. Wavelengths are in nanometers,
following the convention of spectral irradiance tables.
"""

from dataclasses import dataclass

# =============================================================================
# Fundamental Physical Constants
# =============================================================================

# Elementary charge [C]
ELEMENTARY_CHARGE = 1.602176634e-19

# Speed of light in vacuum [m/s]
SPEED_OF_LIGHT = 2.99792458e8

# Planck constant [J·s]
PLANCK_CONSTANT = 6.62607015e-34

# =============================================================================
# Exposure Defaults
# =============================================================================

# Nominal exposure used when a single integration time of 0 is configured.
# A zero integration time is what an unresolved auto-exposure leaves behind.
DEFAULT_EXPOSURE_S = 0.010


@dataclass(frozen=True)
class PhysicalConstants:
    """Constants injected into the transduction pipeline.

    Attributes:
        elementary_charge: Charge per electron [C]
        default_exposure_s: Exposure substituted for a zero integration time [s]
    """
    elementary_charge: float = ELEMENTARY_CHARGE
    default_exposure_s: float = DEFAULT_EXPOSURE_S


DEFAULT_CONSTANTS = PhysicalConstants()

# =============================================================================
# Noise Modes
# =============================================================================

@dataclass(frozen=True)
class NoiseModeNames:
    """Noise mode identifiers accepted in configuration files."""
    NONE = "none"
    PHOTON_ONLY = "photon_only"
    PHOTON_AND_ELECTRONIC = "photon_and_electronic"


NOISE_MODES = NoiseModeNames()

# =============================================================================
# Current Density Strategies
# =============================================================================

@dataclass(frozen=True)
class DensityStrategyNames:
    """Current density strategy identifiers."""
    AUTO = "auto"
    BULK = "bulk"
    ACCUMULATE = "accumulate"


DENSITY_STRATEGIES = DensityStrategyNames()

# =============================================================================
# Performance Thresholds
# =============================================================================

# Largest flattened [rows*cols, wavelengths] photon matrix handled by the
# bulk matrix-multiply strategy (64M float64 elements, 512 MB).
BULK_ELEMENT_LIMIT = 2 ** 26

# Default number of worker threads for the accumulation kernel
DEFAULT_NUM_THREADS = 4

# =============================================================================
# Unit Conversions
# =============================================================================

UM_TO_M = 1e-6
NM_TO_M = 1e-9

# Numerical precision for comparisons
NUMERICAL_EPSILON = 1e-10
