"""
Signal current density estimation.

Converts the optical image irradiance [photons/(m²·nm·s)] into the current
density [A/m²] that each sensor channel would generate at every optical
sample:

    scd[r, c, ch] = q · Σ_w photons[r, c, w] · QE[w, ch] · Δλ

Two numerically equivalent strategies are provided:
- BulkStrategy: one matrix multiply on the image flattened to
  [rows·cols, wave]. Fast, but holds the flattened copy and the product.
- AccumulationStrategy: a numba kernel that walks the wavebands one at a
  time and accumulates into the output, so no flattened copy is needed.

The estimator picks one explicitly from the size of the photon array.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from numba import jit, prange

from photo_tran.core.constants import (
    BULK_ELEMENT_LIMIT,
    DEFAULT_CONSTANTS,
    DENSITY_STRATEGIES,
    PhysicalConstants,
)
from photo_tran.core.errors import ComputationFailure, ConfigurationError, MissingDataError
from photo_tran.core.fields import AlignedResponse, CurrentDensityField, SpectralField

logger = logging.getLogger(__name__)


# =============================================================================
# Numba-accelerated accumulation kernel
# =============================================================================

@jit(nopython=True, cache=True, parallel=True)
def accumulate_by_wavelength(photons: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Accumulate weighted irradiance one waveband at a time.

    Rows are processed in parallel; within a row every output element is
    summed over wavelengths in increasing index order, so the result does not
    depend on the number of threads.

    Args:
        photons: Irradiance [row, col, wave], float64
        weights: QE × bin width [wave, channel], float64

    Returns:
        Weighted photon rate [row, col, channel] (photons/(m²·s))
    """
    n_rows, n_cols, n_wave = photons.shape
    n_channels = weights.shape[1]
    result = np.zeros((n_rows, n_cols, n_channels))

    for r in prange(n_rows):
        for w in range(n_wave):
            for ch in range(n_channels):
                weight = weights[w, ch]
                if weight == 0.0:
                    continue
                for c in range(n_cols):
                    result[r, c, ch] += photons[r, c, w] * weight

    return result


# =============================================================================
# Strategies
# =============================================================================

class DensityStrategy(ABC):
    """Computes Σ_w photons[..., w] · weights[w, ch]."""

    name = ""

    @abstractmethod
    def weighted_sum(self, photons: np.ndarray, weights: np.ndarray) -> np.ndarray:
        """Return the weighted photon rate [row, col, channel]."""


class BulkStrategy(DensityStrategy):
    """Single matrix multiply on the XW-formatted image."""

    name = DENSITY_STRATEGIES.BULK

    def weighted_sum(self, photons: np.ndarray, weights: np.ndarray) -> np.ndarray:
        n_rows, n_cols, n_wave = photons.shape
        xw = photons.reshape(n_rows * n_cols, n_wave)
        return (xw @ weights).reshape(n_rows, n_cols, weights.shape[1])


class AccumulationStrategy(DensityStrategy):
    """Per-waveband accumulation with bounded working memory."""

    name = DENSITY_STRATEGIES.ACCUMULATE

    def weighted_sum(self, photons: np.ndarray, weights: np.ndarray) -> np.ndarray:
        return accumulate_by_wavelength(
            np.ascontiguousarray(photons, dtype=np.float64),
            np.ascontiguousarray(weights, dtype=np.float64),
        )


STRATEGIES = {
    DENSITY_STRATEGIES.BULK: BulkStrategy,
    DENSITY_STRATEGIES.ACCUMULATE: AccumulationStrategy,
}


class CurrentDensityEstimator:
    """Signal current density engine.

    Example:
        >>> estimator = CurrentDensityEstimator(strategy="auto")
        >>> scd = estimator.estimate(optical_image, aligned_response)
        >>> scd.data.shape  # (rows, cols, channels), A/m^2
    """

    def __init__(
        self,
        strategy: str = DENSITY_STRATEGIES.AUTO,
        bulk_element_limit: int = BULK_ELEMENT_LIMIT,
        constants: PhysicalConstants = DEFAULT_CONSTANTS,
    ):
        """Initialize the estimator.

        Args:
            strategy: "auto", "bulk" or "accumulate"
            bulk_element_limit: Largest rows·cols·waves handled by the bulk
                strategy when strategy is "auto"
            constants: Physical constants (elementary charge)
        """
        strategy = strategy.lower()
        if strategy != DENSITY_STRATEGIES.AUTO and strategy not in STRATEGIES:
            raise ConfigurationError(f"Unknown current density strategy: {strategy}")
        if bulk_element_limit < 0:
            raise ConfigurationError("bulk_element_limit must be non-negative")
        self.strategy = strategy
        self.bulk_element_limit = int(bulk_element_limit)
        self.constants = constants

    def select_strategy(self, n_elements: int) -> DensityStrategy:
        """Choose the strategy for a photon array with n_elements values."""
        if self.strategy != DENSITY_STRATEGIES.AUTO:
            return STRATEGIES[self.strategy]()
        if n_elements <= self.bulk_element_limit:
            return BulkStrategy()
        return AccumulationStrategy()

    def estimate(
        self,
        optical_image: SpectralField,
        response: AlignedResponse,
        strategy: Optional[DensityStrategy] = None,
    ) -> CurrentDensityField:
        """Compute the signal current density image.

        Args:
            optical_image: Irradiance in photons
            response: QE aligned to the optical image wavelengths
            strategy: Override the configured strategy

        Returns:
            CurrentDensityField [row, col, channel] in A/m²

        Raises:
            MissingDataError: If the optical image has no photon data
            ConfigurationError: If the response is not aligned to the image
            ComputationFailure: If the result is empty or not finite
        """
        if not optical_image.has_photons:
            raise MissingDataError(
                f"Optical image '{optical_image.name}' has no irradiance in photons"
            )

        photons = optical_image.photons
        if response.qe.shape[0] != photons.shape[2]:
            raise ConfigurationError(
                f"Aligned QE has {response.qe.shape[0]} wavelengths, "
                f"optical image has {photons.shape[2]}"
            )

        # QE per nm -> QE per bin
        weights = response.qe * optical_image.bin_width_nm

        if strategy is None:
            strategy = self.select_strategy(photons.size)
        logger.debug(
            f"Current density via {strategy.name} strategy: "
            f"{photons.shape[0]}x{photons.shape[1]} samples, {photons.shape[2]} wavebands, "
            f"{weights.shape[1]} channel(s)"
        )

        rate = strategy.weighted_sum(photons, weights)
        if rate.size == 0:
            raise ComputationFailure("Signal current density image is empty")

        # photons/(m²·s) -> C/(m²·s)
        scd = rate * self.constants.elementary_charge
        if not np.all(np.isfinite(scd)):
            raise ComputationFailure("Signal current density contains non-finite values")

        return CurrentDensityField(data=scd, strategy=strategy.name)
