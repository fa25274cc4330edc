"""
Spatial integration over the pixel aperture.

Two steps turn the registered current density [A/m²] into a current per
pixel [A]:

1. ApertureWeighter: multiply every sub-pixel sample by the fraction of it
   covered by the photodetector. Without super-sampling this is the scalar
   fill factor.
2. FilterDecimator: average the N x N samples of each pixel and scale by the
   pixel area, then keep one value per pixel.

For a uniform field both paths give current = density · pixel area · fill
factor, independent of N.
"""

import logging

import numpy as np
from scipy.signal import convolve2d

from photo_tran.core.errors import ComputationFailure
from photo_tran.core.fields import RegisteredField
from photo_tran.core.sensor import PixelGrid, SamplingSpec

logger = logging.getLogger(__name__)


def _interval_overlap(start: float, length: float, pitch: float, n: int) -> np.ndarray:
    """Fraction of each of n equal sub-cells of [0, pitch] covered by [start, start+length]."""
    edges = np.linspace(0.0, pitch, n + 1)
    lo = np.maximum(edges[:-1], start)
    hi = np.minimum(edges[1:], start + length)
    overlap = np.clip(hi - lo, 0.0, None) / (pitch / n)
    return np.clip(overlap, 0.0, 1.0)


def photodetector_tile(pixel: PixelGrid, samples_per_pixel: int) -> np.ndarray:
    """Photodetector coverage of the N x N sub-cells of one pixel.

    Args:
        pixel: Pixel geometry with photodetector placement
        samples_per_pixel: N

    Returns:
        Array [N, N] with entries in [0, 1]; its mean is the fill factor
    """
    n = samples_per_pixel
    pd = pixel.photodetector
    rows = _interval_overlap(pixel.pd_y_m, pd.height_m, pixel.height_m, n)
    cols = _interval_overlap(pixel.pd_x_m, pd.width_m, pixel.pitch_m, n)
    return np.outer(rows, cols)


class ApertureWeighter:
    """Weights sub-pixel samples by photodetector coverage."""

    def weight(
        self,
        registered: RegisteredField,
        pixel: PixelGrid,
        sampling: SamplingSpec,
    ) -> RegisteredField:
        """Apply photodetector weights to a registered field.

        Args:
            registered: Current density on the (sub-)pixel grid
            pixel: Pixel geometry
            sampling: Sub-pixel sampling

        Returns:
            RegisteredField of the same shape
        """
        n = sampling.samples_per_pixel
        if n == 1:
            weighted = registered.data * pixel.fill_factor
        else:
            tile = photodetector_tile(pixel, n)
            weights = np.tile(tile, (pixel.rows, pixel.cols))
            weighted = registered.data * weights[:, :, np.newaxis]
            logger.debug(
                f"Photodetector tile {n}x{n}, mean coverage {tile.mean():.4f} "
                f"(fill factor {pixel.fill_factor:.4f})"
            )

        return RegisteredField(
            data=weighted,
            samples_per_pixel=registered.samples_per_pixel,
            mosaicked=registered.mosaicked,
        )


def blur_sample(data: np.ndarray, samples_per_pixel: int, pixel_area_m2: float) -> np.ndarray:
    """Box-filter each channel and sample one value per pixel.

    The filter is pixel_area · ones(N, N) / N², so each sample becomes the
    mean of its N x N neighbourhood times the pixel area. Samples are taken
    at the centre sub-sample of every pixel.

    Args:
        data: Weighted current density [rows·N, cols·N, channel]
        samples_per_pixel: N (odd)
        pixel_area_m2: Pixel area [m²]

    Returns:
        Current per pixel [rows, cols, channel] in A
    """
    n = samples_per_pixel
    kernel = pixel_area_m2 * np.ones((n, n)) / n ** 2
    offset = (n - 1) // 2

    channels = []
    for ch in range(data.shape[2]):
        blurred = convolve2d(data[:, :, ch], kernel, mode="same")
        channels.append(blurred[offset::n, offset::n])
    return np.stack(channels, axis=2)


class FilterDecimator:
    """Reduces the sub-pixel grid to one current value per pixel."""

    def decimate(
        self,
        weighted: RegisteredField,
        pixel: PixelGrid,
        sampling: SamplingSpec,
    ) -> np.ndarray:
        """Integrate each pixel's samples into a current.

        Args:
            weighted: Aperture-weighted current density [A/m²]
            pixel: Pixel geometry
            sampling: Sub-pixel sampling

        Returns:
            Current [rows, cols, channel] in A

        Raises:
            ComputationFailure: If the result does not match the pixel array
        """
        n = sampling.samples_per_pixel
        if n == 1:
            current = weighted.data * pixel.pixel_area_m2
        else:
            current = blur_sample(weighted.data, n, pixel.pixel_area_m2)

        if current.shape[:2] != pixel.size:
            raise ComputationFailure(
                f"Pixel current has shape {current.shape[:2]}, expected {pixel.size}"
            )
        return current
