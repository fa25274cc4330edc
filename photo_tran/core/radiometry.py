"""
Radiometric conversion from pixel current to mean voltage.

For every exposure t the pixel current I [A] becomes

    V = I · t · gain / q

i.e. the collected charge expressed in electrons times the conversion gain.
The result is then scaled by the relative illumination (etendue) map and
negative values are clipped to zero.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

from photo_tran.core.constants import DEFAULT_CONSTANTS, PhysicalConstants
from photo_tran.core.errors import ComputationFailure, ConfigurationError

logger = logging.getLogger(__name__)


class RadiometricConverter:
    """Current-to-voltage conversion engine."""

    def __init__(self, constants: PhysicalConstants = DEFAULT_CONSTANTS):
        """Initialize the converter.

        Args:
            constants: Elementary charge and default exposure
        """
        self.constants = constants

    def resolve_exposures(self, integration_times_s: Sequence[float]) -> Tuple[float, ...]:
        """Exposure times actually used.

        A single exposure of 0 (an unresolved auto-exposure) is replaced by
        the nominal default exposure. Zeros inside a list of several
        exposures are kept.
        """
        times = tuple(float(t) for t in integration_times_s)
        if not times:
            raise ConfigurationError("At least one integration time is required")
        if len(times) == 1 and times[0] == 0.0:
            logger.warning(
                f"Integration time is 0; using default exposure "
                f"{self.constants.default_exposure_s * 1e3:g} ms"
            )
            return (self.constants.default_exposure_s,)
        return times

    def convert(
        self,
        current: np.ndarray,
        integration_times_s: Sequence[float],
        conversion_gain_v_per_e: float,
        etendue: np.ndarray,
    ) -> Tuple[np.ndarray, Tuple[float, ...]]:
        """Convert pixel current to clipped mean voltage.

        Args:
            current: Pixel current [rows, cols, channel] in A
            integration_times_s: Exposure times [s]
            conversion_gain_v_per_e: Conversion gain [V/e-]
            etendue: Relative illumination [rows, cols]

        Returns:
            (volts, exposures) where volts is [rows, cols], [rows, cols, channel],
            [rows, cols, exposure] or [rows, cols, channel, exposure]

        Raises:
            ConfigurationError: If the etendue map does not match the array
            ComputationFailure: If the current is empty
        """
        if current.size == 0:
            raise ComputationFailure("Pixel current is empty")

        etendue = np.asarray(etendue, dtype=float)
        if etendue.shape != current.shape[:2]:
            raise ConfigurationError(
                f"Etendue map shape {etendue.shape} does not match pixel array {current.shape[:2]}"
            )

        exposures = self.resolve_exposures(integration_times_s)
        # A -> e-/s -> V per exposure
        scale = np.asarray(exposures) * conversion_gain_v_per_e / self.constants.elementary_charge

        volts = current[..., np.newaxis] * scale
        if current.shape[2] == 1:
            volts = volts[:, :, 0, :]
        if len(exposures) == 1:
            volts = volts[..., 0]

        volts = volts * etendue.reshape(etendue.shape + (1,) * (volts.ndim - 2))
        volts = np.maximum(volts, 0.0)

        logger.debug(
            f"Converted current to volts: shape {volts.shape}, "
            f"exposures {exposures}, max {volts.max():.4g} V"
        )
        return volts, exposures
