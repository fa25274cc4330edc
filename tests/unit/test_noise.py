"""
Unit tests for noise gating and the default sensor noise model.
"""

import pytest
import numpy as np

from photo_tran.core.errors import ComputationFailure
from photo_tran.core.fields import NoiseMode, SignalField, SpectralResponse
from photo_tran.core.noise import NoiseModel, NoiseOrchestrator, SensorNoiseModel
from photo_tran.core.sensor import NoiseParameters, PixelGrid, SensorDescription

GAIN = 1.0e-4


class RecordingModel(NoiseModel):
    """Noise model that counts calls and returns a fixed array."""

    def __init__(self):
        self.calls = 0

    def add_noise(self, signal, sensor, mode):
        self.calls += 1
        return np.full(signal.mean_volts.shape, 0.123)


def make_sensor(mode=NoiseMode.NONE, noise=None, swing=1.0, size=(8, 8)):
    pixel = PixelGrid(pitch_m=2e-6, size=size, conversion_gain_v_per_e=GAIN, voltage_swing_v=swing)
    return SensorDescription(
        pixel=pixel,
        response=SpectralResponse([550.0], [1.0]),
        noise_mode=mode,
        noise=noise or NoiseParameters(),
    )


def make_signal(value=0.2, shape=(8, 8), exposures=(0.01,)):
    volts = np.full(shape, value)
    return SignalField(
        volts=volts,
        mean_volts=volts,
        exposure_times_s=exposures,
        conversion_gain=GAIN,
    )


class TestNoiseOrchestrator:
    """Tests for noise gating."""

    def test_none_returns_mean(self):
        """NoiseMode.NONE returns the mean signal unchanged."""
        model = RecordingModel()
        signal = make_signal()

        result = NoiseOrchestrator(model).apply(signal, make_sensor(NoiseMode.NONE))

        assert result is signal
        assert model.calls == 0

    @pytest.mark.parametrize("mode", [NoiseMode.PHOTON_ONLY, NoiseMode.PHOTON_AND_ELECTRONIC])
    def test_model_called_once(self, mode):
        """Noise modes call the model exactly once and return its output."""
        model = RecordingModel()

        result = NoiseOrchestrator(model).apply(make_signal(), make_sensor(mode))

        assert model.calls == 1
        np.testing.assert_array_equal(result.volts, 0.123)
        np.testing.assert_array_equal(result.mean_volts, 0.2)
        assert result.noise_mode is mode

    def test_empty_mean_raises(self):
        """An empty mean signal fails without calling the model."""
        model = RecordingModel()
        empty = make_signal(shape=(0, 0))

        with pytest.raises(ComputationFailure):
            NoiseOrchestrator(model).apply(empty, make_sensor(NoiseMode.PHOTON_ONLY))
        assert model.calls == 0

    def test_default_model(self):
        """Without a model the sensor noise model is used."""
        assert isinstance(NoiseOrchestrator().model, SensorNoiseModel)


class TestSensorNoiseModel:
    """Tests for the default noise model."""

    def test_seed_reproducible(self):
        """The same seed gives the same noise."""
        sensor = make_sensor(NoiseMode.PHOTON_ONLY)
        a = SensorNoiseModel(seed=5).add_noise(make_signal(), sensor, NoiseMode.PHOTON_ONLY)
        b = SensorNoiseModel(seed=5).add_noise(make_signal(), sensor, NoiseMode.PHOTON_ONLY)
        np.testing.assert_array_equal(a, b)

    def test_sensor_seed_used(self):
        """The sensor's noise seed applies when the model has none."""
        sensor = make_sensor(NoiseMode.PHOTON_ONLY, NoiseParameters(seed=11))
        a = SensorNoiseModel().add_noise(make_signal(), sensor, NoiseMode.PHOTON_ONLY)
        b = SensorNoiseModel().add_noise(make_signal(), sensor, NoiseMode.PHOTON_ONLY)
        np.testing.assert_array_equal(a, b)

    def test_shot_noise_statistics(self):
        """Photon noise keeps the mean and has Poisson variance."""
        signal = make_signal(0.2, shape=(200, 200))
        sensor = make_sensor(NoiseMode.PHOTON_ONLY, size=(200, 200))

        noisy = SensorNoiseModel(seed=1).add_noise(signal, sensor, NoiseMode.PHOTON_ONLY)
        electrons = noisy / GAIN

        assert np.isclose(electrons.mean(), 2000.0, rtol=0.01)
        assert np.isclose(electrons.var(), 2000.0, rtol=0.05)

    def test_quantized_to_electrons(self):
        """Photon-only output is a whole number of electrons."""
        sensor = make_sensor(NoiseMode.PHOTON_ONLY)
        noisy = SensorNoiseModel(seed=2).add_noise(make_signal(), sensor, NoiseMode.PHOTON_ONLY)
        electrons = noisy / GAIN
        np.testing.assert_allclose(electrons, np.round(electrons), atol=1e-6)

    def test_clipped_to_voltage_swing(self):
        """Output never exceeds the voltage swing."""
        sensor = make_sensor(NoiseMode.PHOTON_ONLY, swing=0.1)
        noisy = SensorNoiseModel(seed=3).add_noise(make_signal(0.2), sensor, NoiseMode.PHOTON_ONLY)
        assert np.all(noisy <= 0.1)
        assert np.all(noisy >= 0.0)

    def test_zero_signal_stays_zero_without_electronics(self):
        """No light and photon-only noise gives zero volts."""
        sensor = make_sensor(NoiseMode.PHOTON_ONLY)
        noisy = SensorNoiseModel(seed=4).add_noise(make_signal(0.0), sensor, NoiseMode.PHOTON_ONLY)
        np.testing.assert_array_equal(noisy, 0.0)

    def test_dark_signal_added(self):
        """Dark voltage raises the mean in electronic mode."""
        params = NoiseParameters(dark_voltage_v_per_s=5.0)
        signal = make_signal(0.0, shape=(100, 100))
        sensor = make_sensor(NoiseMode.PHOTON_AND_ELECTRONIC, params, size=(100, 100))

        noisy = SensorNoiseModel(seed=6).add_noise(signal, sensor, NoiseMode.PHOTON_AND_ELECTRONIC)

        # 5 V/s * 10 ms = 50 mV
        assert np.isclose(noisy.mean(), 0.05, rtol=0.02)

    def test_electronic_terms_ignored_in_photon_mode(self):
        """Read noise and dark signal need PHOTON_AND_ELECTRONIC."""
        params = NoiseParameters(read_noise_v=0.01, dark_voltage_v_per_s=5.0)
        sensor = make_sensor(NoiseMode.PHOTON_ONLY, params)
        noisy = SensorNoiseModel(seed=7).add_noise(make_signal(0.0), sensor, NoiseMode.PHOTON_ONLY)
        np.testing.assert_array_equal(noisy, 0.0)

    def test_fixed_pattern_shared_across_exposures(self):
        """DSNU offsets are the same in every exposure."""
        params = NoiseParameters(dsnu_sigma_v=0.01)
        signal = make_signal(0.0, shape=(8, 8, 2), exposures=(0.01, 0.02))
        sensor = make_sensor(NoiseMode.PHOTON_AND_ELECTRONIC, params)

        noisy = SensorNoiseModel(seed=8).add_noise(signal, sensor, NoiseMode.PHOTON_AND_ELECTRONIC)

        np.testing.assert_array_equal(noisy[..., 0], noisy[..., 1])
        assert noisy.max() > 0.0
