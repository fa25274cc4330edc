"""
Spectral response alignment.

Sensor QE curves are usually tabulated on their own wavelength grid. Before
they can weight an optical image they are resampled onto the image's
wavelength sampling; values outside the tabulated range are treated as zero.

Also converts irradiance between energy and photon units (E = h·c/λ per
photon) for optical images delivered in W/(m²·nm).
"""

import logging

import numpy as np

from photo_tran.core.constants import NM_TO_M, PLANCK_CONSTANT, SPEED_OF_LIGHT
from photo_tran.core.errors import ConfigurationError
from photo_tran.core.fields import AlignedResponse, SpectralResponse

logger = logging.getLogger(__name__)


def energy_to_photons(energy: np.ndarray, wavelengths_nm: np.ndarray) -> np.ndarray:
    """Convert spectral irradiance from energy to photon units.

    Args:
        energy: Irradiance [W/(m²·nm)], wavelength on the last axis
        wavelengths_nm: Wavelength samples [nm]

    Returns:
        Irradiance [photons/(m²·nm·s)], same shape as ``energy``
    """
    wave_m = np.asarray(wavelengths_nm, dtype=float) * NM_TO_M
    return np.asarray(energy, dtype=float) * wave_m / (PLANCK_CONSTANT * SPEED_OF_LIGHT)


def photons_to_energy(photons: np.ndarray, wavelengths_nm: np.ndarray) -> np.ndarray:
    """Inverse of :func:`energy_to_photons`."""
    wave_m = np.asarray(wavelengths_nm, dtype=float) * NM_TO_M
    return np.asarray(photons, dtype=float) * (PLANCK_CONSTANT * SPEED_OF_LIGHT) / wave_m


def align_response(
    field_wavelengths_nm: np.ndarray,
    response: SpectralResponse,
) -> AlignedResponse:
    """Resample QE curves onto the optical image wavelengths.

    Args:
        field_wavelengths_nm: Optical image wavelength samples [nm]
        response: Sensor spectral response

    Returns:
        AlignedResponse with one row per field wavelength

    Raises:
        ConfigurationError: If the response has a single wavelength that
            differs from the field sampling
    """
    field_wave = np.atleast_1d(np.asarray(field_wavelengths_nm, dtype=float))
    sensor_wave = response.wavelengths_nm

    if np.array_equal(field_wave, sensor_wave):
        return AlignedResponse(
            wavelengths_nm=field_wave.copy(),
            qe=response.qe.copy(),
            channel_names=response.channel_names,
        )

    if sensor_wave.size == 1:
        raise ConfigurationError(
            f"Sensor QE is defined only at {sensor_wave[0]:g} nm, which does not match "
            f"the optical image sampling ({field_wave.size} wavelengths, "
            f"{field_wave[0]:g}-{field_wave[-1]:g} nm)"
        )

    order = np.argsort(sensor_wave, kind="stable")
    xp = sensor_wave[order]
    fp = response.qe[order]

    qe = np.empty((field_wave.size, response.n_channels))
    for ch in range(response.n_channels):
        # No extrapolation outside the tabulated range
        qe[:, ch] = np.interp(field_wave, xp, fp[:, ch], left=0.0, right=0.0)

    logger.debug(
        f"Resampled QE from {xp.size} to {field_wave.size} wavelengths "
        f"for {response.n_channels} channel(s)"
    )
    return AlignedResponse(
        wavelengths_nm=field_wave.copy(),
        qe=qe,
        channel_names=response.channel_names,
    )


class SpectralResponseAligner:
    """Stage wrapper around :func:`align_response`."""

    def align(self, field_wavelengths_nm: np.ndarray, response: SpectralResponse) -> AlignedResponse:
        return align_response(field_wavelengths_nm, response)
