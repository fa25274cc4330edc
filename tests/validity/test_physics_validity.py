"""
Physics Validity Checks for PhotoTran

These tests verify that the simulated signal follows the basic physics of
photon-to-charge conversion: linearity in flux, exposure and photodetector
area, invariance under sub-pixel sampling, and non-negative output.
"""

import pytest
import numpy as np

from photo_tran.core.constants import ELEMENTARY_CHARGE
from photo_tran.core.current_density import CurrentDensityEstimator
from photo_tran.core.fields import AlignedResponse, SpectralField, SpectralResponse
from photo_tran.core.pipeline import compute_signal
from photo_tran.core.radiometry import RadiometricConverter
from photo_tran.core.sensor import PixelGrid, SamplingSpec, SensorDescription

PITCH = 2.0e-6
GAIN = 1.0e-4


def field(flux=1.0e16):
    return SpectralField.uniform(flux, [550.0], (32, 32), 0.5e-6, bin_width_nm=10.0)


def sensor(fill_factor=0.5, n=1, t=0.01):
    pixel = PixelGrid.with_fill_factor(PITCH, (4, 4), fill_factor, conversion_gain_v_per_e=GAIN)
    return SensorDescription(
        pixel=pixel,
        response=SpectralResponse([550.0], [1.0]),
        sampling=SamplingSpec(n),
        integration_times_s=t,
    )


class TestChargeConservation:
    """Photon flux to charge bookkeeping."""

    def test_unit_conversion(self):
        """Current density equals flux * bin width * q for unit QE."""
        scd = CurrentDensityEstimator().estimate(
            field(3.0e15), AlignedResponse(np.array([550.0]), np.ones((1, 1)), ())
        )
        np.testing.assert_allclose(scd.data, 3.0e15 * 10.0 * ELEMENTARY_CHARGE, rtol=1e-12)

    def test_reference_scenario(self):
        """4x4 sensor: flux * 10 * pixel area * fill factor * t * gain."""
        signal = compute_signal(field(), sensor())
        expected = 1.0e16 * 10.0 * PITCH ** 2 * 0.5 * 0.01 * GAIN
        np.testing.assert_allclose(signal.volts, expected, rtol=1e-9)


class TestLinearity:
    """Signal scales linearly with its inputs."""

    def test_supersampling_invariance(self):
        """N=1 and N=5 give the same signal for a uniform field."""
        coarse = compute_signal(field(), sensor(n=1))
        fine = compute_signal(field(), sensor(n=5))
        np.testing.assert_allclose(fine.volts, coarse.volts, rtol=1e-9)

    @pytest.mark.parametrize("fill_factor", [0.1, 0.25, 0.5])
    def test_fill_factor_doubling(self, fill_factor):
        """Doubling the fill factor doubles the signal."""
        single = compute_signal(field(), sensor(fill_factor=fill_factor, n=5))
        double = compute_signal(field(), sensor(fill_factor=2 * fill_factor, n=5))
        np.testing.assert_allclose(double.volts, 2 * single.volts, rtol=1e-9)

    def test_flux_linearity(self):
        """Signal is proportional to the photon flux."""
        low = compute_signal(field(1e15), sensor())
        high = compute_signal(field(4e15), sensor())
        np.testing.assert_allclose(high.volts, 4 * low.volts, rtol=1e-9)

    def test_exposure_linearity(self):
        """Signal is proportional to the integration time."""
        short = compute_signal(field(), sensor(t=0.005))
        long = compute_signal(field(), sensor(t=0.02))
        np.testing.assert_allclose(long.volts, 4 * short.volts, rtol=1e-9)


class TestBounds:
    """Output stays physical."""

    def test_zero_exposure_fallback(self):
        """Scalar integration time 0 behaves as the 10 ms default."""
        zero = compute_signal(field(), sensor(t=0.0))
        nominal = compute_signal(field(), sensor(t=0.010))
        np.testing.assert_array_equal(zero.volts, nominal.volts)
        assert zero.exposure_times_s == (0.010,)

    def test_negative_current_clipped(self):
        """Negative input never yields negative volts."""
        current = np.array([[[-1e-15], [1e-15]]])
        volts, _ = RadiometricConverter().convert(current, [0.01], GAIN, np.ones((1, 2)))
        assert volts[0, 0] == 0.0
        assert volts[0, 1] > 0.0

    def test_dark_field_gives_zero(self):
        """No light gives no signal."""
        signal = compute_signal(field(0.0), sensor(n=5))
        np.testing.assert_array_equal(signal.volts, 0.0)
