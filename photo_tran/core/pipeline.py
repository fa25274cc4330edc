"""
Transduction pipeline entry point.

Runs the stages in order, each on the previous stage's output:

    SpectralField ──SpectralResponseAligner──▶ AlignedResponse
                  ──CurrentDensityEstimator──▶ CurrentDensityField  [A/m²]
                  ──GridRegistrar───────────▶ RegisteredField      [A/m²]
                  ──ApertureWeighter────────▶ RegisteredField      [A/m²]
                  ──FilterDecimator─────────▶ pixel current        [A]
                  ──RadiometricConverter────▶ mean SignalField     [V]
                  ──NoiseOrchestrator───────▶ SignalField          [V]

Any stage failure propagates as a TransductionError subclass; no partial
signal is returned.
"""

import logging
from typing import Callable, Optional

import numba

from photo_tran.core.aperture import ApertureWeighter, FilterDecimator
from photo_tran.core.constants import (
    BULK_ELEMENT_LIMIT,
    DEFAULT_CONSTANTS,
    DENSITY_STRATEGIES,
    PhysicalConstants,
)
from photo_tran.core.current_density import CurrentDensityEstimator
from photo_tran.core.errors import ConfigurationError
from photo_tran.core.fields import SignalField, SpectralField
from photo_tran.core.noise import NoiseModel, NoiseOrchestrator
from photo_tran.core.radiometry import RadiometricConverter
from photo_tran.core.registration import GridRegistrar
from photo_tran.core.sensor import SensorDescription
from photo_tran.core.spectral import SpectralResponseAligner

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]


class TransductionPipeline:
    """Optical-to-electrical transduction for one sensor exposure set.

    Example:
        >>> pipeline = TransductionPipeline(strategy="auto")
        >>> signal = pipeline.run(optical_image, sensor)
        >>> signal.volts.shape  # (rows, cols)
    """

    def __init__(
        self,
        constants: Optional[PhysicalConstants] = None,
        strategy: str = DENSITY_STRATEGIES.AUTO,
        bulk_element_limit: int = BULK_ELEMENT_LIMIT,
        noise_model: Optional[NoiseModel] = None,
        progress: Optional[ProgressCallback] = None,
        num_threads: Optional[int] = None,
    ):
        """Initialize the pipeline.

        Args:
            constants: Physical constants; DEFAULT_CONSTANTS when None
            strategy: Current density strategy ("auto", "bulk", "accumulate")
            bulk_element_limit: Size threshold for the automatic strategy choice
            noise_model: Noise model used when the sensor asks for noise
            progress: Optional callback receiving (fraction, message)
            num_threads: Worker threads for the accumulation kernel
        """
        self.constants = constants if constants is not None else DEFAULT_CONSTANTS
        self.strategy = strategy
        self.bulk_element_limit = bulk_element_limit
        self.noise_model = noise_model
        self.progress = progress
        self.num_threads = num_threads

        if num_threads is not None and num_threads < 1:
            raise ConfigurationError(f"num_threads must be at least 1, got {num_threads}")

        # Stages are created lazily
        self._aligner = None
        self._estimator = None
        self._registrar = None
        self._weighter = None
        self._decimator = None
        self._converter = None
        self._orchestrator = None

    @property
    def aligner(self) -> SpectralResponseAligner:
        if self._aligner is None:
            self._aligner = SpectralResponseAligner()
        return self._aligner

    @property
    def estimator(self) -> CurrentDensityEstimator:
        """Get or create the current density estimator (lazy initialization)."""
        if self._estimator is None:
            self._estimator = CurrentDensityEstimator(
                strategy=self.strategy,
                bulk_element_limit=self.bulk_element_limit,
                constants=self.constants,
            )
        return self._estimator

    @property
    def registrar(self) -> GridRegistrar:
        if self._registrar is None:
            self._registrar = GridRegistrar()
        return self._registrar

    @property
    def weighter(self) -> ApertureWeighter:
        if self._weighter is None:
            self._weighter = ApertureWeighter()
        return self._weighter

    @property
    def decimator(self) -> FilterDecimator:
        if self._decimator is None:
            self._decimator = FilterDecimator()
        return self._decimator

    @property
    def converter(self) -> RadiometricConverter:
        if self._converter is None:
            self._converter = RadiometricConverter(constants=self.constants)
        return self._converter

    @property
    def orchestrator(self) -> NoiseOrchestrator:
        """Get or create the noise orchestrator (lazy initialization)."""
        if self._orchestrator is None:
            self._orchestrator = NoiseOrchestrator(model=self.noise_model)
        return self._orchestrator

    def _report(self, fraction: float, message: str) -> None:
        logger.debug(f"[{fraction:4.0%}] {message}")
        if self.progress is not None:
            self.progress(fraction, message)

    def _apply_threads(self) -> None:
        if self.num_threads is None:
            return
        available = numba.config.NUMBA_NUM_THREADS
        threads = min(self.num_threads, available)
        if threads < self.num_threads:
            logger.debug(f"Requested {self.num_threads} threads, numba provides {available}")
        numba.set_num_threads(threads)

    def run(self, optical_image: SpectralField, sensor: SensorDescription) -> SignalField:
        """Compute the sensor signal for an optical image.

        Args:
            optical_image: Spectral irradiance on the optical grid
            sensor: Sensor description

        Returns:
            SignalField in volts

        Raises:
            MissingDataError: If the optical image has no photon data
            ConfigurationError: For incompatible inputs
            ComputationFailure: If an intermediate field could not be produced
        """
        logger.info(
            f"Computing signal for '{sensor.name}' ({sensor.pixel.rows}x{sensor.pixel.cols}, "
            f"{sensor.n_channels} channel(s)) from '{optical_image.name}'"
        )
        self._apply_threads()

        self._report(0.1, "Estimating signal current density")
        response = self.aligner.align(optical_image.wavelengths_nm, sensor.response)
        scd = self.estimator.estimate(optical_image, response)

        self._report(0.4, "Integrating over the pixel aperture")
        cfa_map = sensor.cfa_map()
        registered = self.registrar.register(
            scd, optical_image, sensor.pixel, sensor.sampling, cfa_map=cfa_map,
        )
        weighted = self.weighter.weight(registered, sensor.pixel, sensor.sampling)
        current = self.decimator.decimate(weighted, sensor.pixel, sensor.sampling)

        self._report(0.7, "Converting current to volts")
        volts, exposures = self.converter.convert(
            current,
            sensor.integration_times_s,
            sensor.pixel.conversion_gain_v_per_e,
            sensor.etendue_map(),
        )
        mean = SignalField(
            volts=volts,
            mean_volts=volts,
            exposure_times_s=exposures,
            conversion_gain=sensor.pixel.conversion_gain_v_per_e,
            has_channel_axis=current.shape[2] > 1,
            metadata={
                "sensor": sensor.name,
                "optical_image": optical_image.name,
                "density_strategy": scd.strategy,
                "samples_per_pixel": sensor.sampling.samples_per_pixel,
                "channel_names": list(response.channel_names),
                "mosaicked": registered.mosaicked,
                "fill_factor": sensor.pixel.fill_factor,
            },
        )

        self._report(0.9, "Applying sensor noise")
        signal = self.orchestrator.apply(mean, sensor)
        signal.metadata["noise_mode"] = signal.noise_mode.value

        self._report(1.0, "Done")
        logger.info(f"Signal computed: shape {signal.volts.shape}, mean {signal.volts.mean():.4g} V")
        return signal


def compute_signal(
    optical_image: SpectralField,
    sensor: SensorDescription,
    progress: Optional[ProgressCallback] = None,
    constants: Optional[PhysicalConstants] = None,
    noise_model: Optional[NoiseModel] = None,
    **options,
) -> SignalField:
    """Compute the electrical signal of a sensor exposed to an optical image.

    Args:
        optical_image: Spectral irradiance on the optical grid
        sensor: Sensor description
        progress: Optional callback receiving (fraction, message)
        constants: Physical constants; DEFAULT_CONSTANTS when None
        noise_model: Noise model; SensorNoiseModel when None
        **options: strategy, bulk_element_limit, num_threads

    Returns:
        SignalField in volts
    """
    pipeline = TransductionPipeline(
        constants=constants,
        noise_model=noise_model,
        progress=progress,
        **options,
    )
    return pipeline.run(optical_image, sensor)
