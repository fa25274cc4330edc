"""
Unit tests for spectral response alignment and unit conversion.
"""

import pytest
import numpy as np

from photo_tran.core.constants import PLANCK_CONSTANT, SPEED_OF_LIGHT
from photo_tran.core.errors import ConfigurationError
from photo_tran.core.fields import SpectralResponse
from photo_tran.core.spectral import (
    SpectralResponseAligner,
    align_response,
    energy_to_photons,
    photons_to_energy,
)


class TestAlignResponse:
    """Tests for QE resampling onto field wavelengths."""

    def test_identical_grids_pass_through(self):
        """Matching wavelength grids return the QE values unchanged."""
        wave = np.array([400.0, 450.0, 500.0])
        qe = np.array([[0.1, 0.2], [0.3, 0.4], [0.5, 0.6]])
        response = SpectralResponse(wave, qe, ("r", "g"))

        aligned = align_response(wave, response)

        np.testing.assert_array_equal(aligned.qe, qe)
        np.testing.assert_array_equal(aligned.wavelengths_nm, wave)
        assert aligned.channel_names == ("r", "g")

    def test_pass_through_copies(self):
        """The aligned QE does not share memory with the response."""
        wave = np.array([400.0, 500.0])
        response = SpectralResponse(wave, np.array([0.2, 0.4]))

        aligned = align_response(wave, response)
        aligned.qe[0, 0] = 99.0

        assert response.qe[0, 0] == 0.2

    def test_linear_interpolation(self):
        """QE between tabulated points is linearly interpolated."""
        response = SpectralResponse([400.0, 500.0], [0.2, 0.6])

        aligned = align_response([425.0, 450.0, 475.0], response)

        np.testing.assert_allclose(aligned.qe[:, 0], [0.3, 0.4, 0.5])

    def test_zero_outside_tabulated_range(self):
        """Field wavelengths outside the response domain get zero QE."""
        response = SpectralResponse([450.0, 550.0], [0.5, 0.5])

        aligned = align_response([400.0, 500.0, 600.0], response)

        np.testing.assert_allclose(aligned.qe[:, 0], [0.0, 0.5, 0.0])

    def test_unsorted_response_wavelengths(self):
        """Response wavelengths in descending order are sorted first."""
        response = SpectralResponse([500.0, 400.0], [0.6, 0.2])

        aligned = align_response([450.0], response)

        assert np.isclose(aligned.qe[0, 0], 0.4)

    def test_each_channel_interpolated(self):
        """Every channel is resampled independently."""
        response = SpectralResponse([400.0, 500.0], [[0.0, 1.0], [1.0, 0.0]])

        aligned = align_response([450.0], response)

        np.testing.assert_allclose(aligned.qe, [[0.5, 0.5]])

    def test_single_sample_mismatch_raises(self):
        """A one-point response cannot be aligned to a different grid."""
        response = SpectralResponse([550.0], [1.0])

        with pytest.raises(ConfigurationError):
            align_response([540.0, 550.0, 560.0], response)

    def test_single_sample_match(self):
        """A one-point response aligned to the same wavelength passes through."""
        response = SpectralResponse([550.0], [0.8])

        aligned = SpectralResponseAligner().align(np.array([550.0]), response)

        assert aligned.qe.shape == (1, 1)
        assert aligned.qe[0, 0] == 0.8


class TestUnitConversion:
    """Tests for energy/photon conversion."""

    def test_single_photon_energy(self):
        """One photon per second at 500 nm carries h*c/lambda watts."""
        energy = photons_to_energy(np.array([1.0]), np.array([500.0]))
        expected = PLANCK_CONSTANT * SPEED_OF_LIGHT / 500e-9
        assert np.isclose(energy[0], expected, rtol=1e-12)

    def test_round_trip(self):
        """Energy -> photons -> energy recovers the input."""
        wave = np.array([400.0, 550.0, 700.0])
        energy = np.random.default_rng(1).uniform(0.1, 2.0, size=(3, 4, 3))

        recovered = photons_to_energy(energy_to_photons(energy, wave), wave)

        np.testing.assert_allclose(recovered, energy, rtol=1e-12)
