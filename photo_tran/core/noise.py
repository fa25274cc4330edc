"""
Sensor noise.

The orchestrator decides whether noise is added at all; the noise model
decides how. Any object implementing NoiseModel can be injected into the
pipeline. The default SensorNoiseModel follows the usual image sensor
noise budget:

- Photon (shot) noise: Poisson statistics on the collected electrons.
- Dark signal: dark voltage rate × exposure added before the shot noise draw.
- PRNU: fixed per-pixel gain variation.
- DSNU: fixed per-pixel offset.
- Read noise: Gaussian, independent per sample.

The electronic terms are only used in PHOTON_AND_ELECTRONIC mode.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from photo_tran.core.errors import ComputationFailure
from photo_tran.core.fields import NoiseMode, SignalField
from photo_tran.core.sensor import SensorDescription

logger = logging.getLogger(__name__)


class NoiseModel(ABC):
    """Produces a noisy realization of a mean signal."""

    @abstractmethod
    def add_noise(
        self,
        signal: SignalField,
        sensor: SensorDescription,
        mode: NoiseMode,
    ) -> np.ndarray:
        """Return noisy volts with the same shape as ``signal.mean_volts``."""


class SensorNoiseModel(NoiseModel):
    """Default noise model driven by the sensor's NoiseParameters.

    Example:
        >>> model = SensorNoiseModel(seed=42)
        >>> noisy = model.add_noise(signal, sensor, NoiseMode.PHOTON_ONLY)
    """

    def __init__(self, seed: Optional[int] = None):
        """Initialize the noise model.

        Args:
            seed: Random seed; when None the sensor's noise seed is used
        """
        self.seed = seed

    def _rng(self, sensor: SensorDescription) -> np.random.Generator:
        seed = self.seed if self.seed is not None else sensor.noise.seed
        return np.random.default_rng(seed)

    @staticmethod
    def _per_pixel(values: np.ndarray, ndim: int) -> np.ndarray:
        """Reshape a [rows, cols] map to broadcast over trailing axes."""
        return values.reshape(values.shape + (1,) * (ndim - 2))

    @staticmethod
    def _per_exposure(signal: SignalField, ndim: int) -> np.ndarray:
        times = np.asarray(signal.exposure_times_s, dtype=float)
        if signal.n_exposures == 1:
            return times[0]
        return times.reshape((1,) * (ndim - 1) + (times.size,))

    def add_noise(
        self,
        signal: SignalField,
        sensor: SensorDescription,
        mode: NoiseMode,
    ) -> np.ndarray:
        """Draw one noisy frame set.

        Args:
            signal: Clipped mean signal
            sensor: Sensor with noise parameters and voltage swing
            mode: PHOTON_ONLY or PHOTON_AND_ELECTRONIC

        Returns:
            Noisy volts clipped to [0, voltage swing]
        """
        rng = self._rng(sensor)
        params = sensor.noise
        gain = signal.conversion_gain
        mean = signal.mean_volts
        ndim = mean.ndim
        electronic = mode is NoiseMode.PHOTON_AND_ELECTRONIC

        volts = mean
        if electronic:
            if params.prnu_sigma > 0:
                prnu = 1.0 + params.prnu_sigma * rng.standard_normal(sensor.pixel.size)
                volts = volts * self._per_pixel(np.clip(prnu, 0.0, None), ndim)
            if params.dark_voltage_v_per_s > 0:
                volts = volts + params.dark_voltage_v_per_s * self._per_exposure(signal, ndim)

        # Shot noise on the electron count
        electrons = rng.poisson(np.clip(volts, 0.0, None) / gain)
        volts = electrons * gain

        if electronic:
            if params.dsnu_sigma_v > 0:
                dsnu = params.dsnu_sigma_v * rng.standard_normal(sensor.pixel.size)
                volts = volts + self._per_pixel(dsnu, ndim)
            if params.read_noise_v > 0:
                volts = volts + params.read_noise_v * rng.standard_normal(volts.shape)

        logger.debug(f"Added {mode.value} noise to signal of shape {mean.shape}")
        return np.clip(volts, 0.0, sensor.pixel.voltage_swing_v)


class NoiseOrchestrator:
    """Gates the noise model on the sensor's noise mode."""

    def __init__(self, model: Optional[NoiseModel] = None):
        """Initialize the orchestrator.

        Args:
            model: Noise model to call; SensorNoiseModel when None
        """
        self.model = model if model is not None else SensorNoiseModel()

    def apply(self, signal: SignalField, sensor: SensorDescription) -> SignalField:
        """Return the final signal for the sensor's noise mode.

        Args:
            signal: Mean signal (already clipped)
            sensor: Sensor description carrying the noise mode

        Returns:
            The mean signal itself for NoiseMode.NONE, otherwise a copy
            carrying the model's output

        Raises:
            ComputationFailure: If the mean signal is empty
        """
        if signal.is_empty:
            raise ComputationFailure("Mean signal is empty; cannot add noise")

        mode = sensor.noise_mode
        if mode is NoiseMode.NONE:
            return signal

        noisy = self.model.add_noise(signal, sensor, mode)
        return signal.with_volts(noisy, mode)
