"""
Unit tests for aperture weighting and box-filter decimation.
"""

import pytest
import numpy as np

from photo_tran.core.aperture import (
    ApertureWeighter,
    FilterDecimator,
    blur_sample,
    photodetector_tile,
)
from photo_tran.core.fields import RegisteredField
from photo_tran.core.sensor import PhotodetectorGeometry, PixelGrid, SamplingSpec

PITCH = 2.0e-6


class TestPhotodetectorTile:
    """Tests for sub-pixel photodetector coverage."""

    def test_full_pixel(self):
        """A photodetector filling the pixel covers every sub-cell."""
        pixel = PixelGrid(pitch_m=PITCH, size=(1, 1))
        np.testing.assert_allclose(photodetector_tile(pixel, 5), 1.0)

    @pytest.mark.parametrize("fill_factor", [0.1, 0.25, 0.5, 0.9])
    def test_mean_is_fill_factor(self, fill_factor):
        """The tile average equals the fill factor."""
        pixel = PixelGrid.with_fill_factor(PITCH, (1, 1), fill_factor)
        tile = photodetector_tile(pixel, 5)

        assert tile.shape == (5, 5)
        assert np.isclose(tile.mean(), fill_factor, rtol=1e-12)
        assert np.all((tile >= 0) & (tile <= 1))

    def test_centred_tile_symmetric(self):
        """A centred photodetector gives a symmetric tile."""
        pixel = PixelGrid.with_fill_factor(PITCH, (1, 1), 0.3)
        tile = photodetector_tile(pixel, 5)

        np.testing.assert_allclose(tile, tile[::-1, :])
        np.testing.assert_allclose(tile, tile[:, ::-1])

    def test_offset_photodetector(self):
        """A photodetector on the left fifth covers only the first column."""
        pd = PhotodetectorGeometry(width_m=PITCH / 5, height_m=PITCH, x_m=0.0, y_m=0.0)
        pixel = PixelGrid(pitch_m=PITCH, size=(1, 1), photodetector=pd)

        tile = photodetector_tile(pixel, 5)

        np.testing.assert_allclose(tile[:, 0], 1.0)
        np.testing.assert_allclose(tile[:, 1:], 0.0, atol=1e-12)


class TestApertureWeighter:
    """Tests for applying aperture weights."""

    def test_unsampled_uses_fill_factor(self):
        """With N=1 the field is scaled by the fill factor."""
        pixel = PixelGrid.with_fill_factor(PITCH, (2, 3), 0.4)
        registered = RegisteredField(np.full((2, 3, 1), 5.0))

        weighted = ApertureWeighter().weight(registered, pixel, SamplingSpec(1))

        np.testing.assert_allclose(weighted.data, 2.0)

    def test_supersampled_tiles_over_array(self):
        """With N>1 the tile is replicated over every pixel."""
        pixel = PixelGrid.with_fill_factor(PITCH, (2, 3), 0.5)
        registered = RegisteredField(np.ones((6, 9, 2)), samples_per_pixel=3)

        weighted = ApertureWeighter().weight(registered, pixel, SamplingSpec(3))
        tile = photodetector_tile(pixel, 3)

        assert weighted.data.shape == (6, 9, 2)
        np.testing.assert_allclose(weighted.data[3:6, 6:9, 1], tile)
        np.testing.assert_allclose(weighted.data[0:3, 0:3, 0], tile)

    def test_input_not_modified(self):
        """The registered field is left untouched."""
        pixel = PixelGrid.with_fill_factor(PITCH, (1, 1), 0.5)
        data = np.ones((1, 1, 1))
        ApertureWeighter().weight(RegisteredField(data), pixel, SamplingSpec(1))
        assert data[0, 0, 0] == 1.0


class TestFilterDecimator:
    """Tests for box filtering and sampling."""

    def test_blur_sample_uniform(self):
        """A uniform field becomes value * pixel area at every pixel."""
        data = np.full((9, 12, 2), 3.0)
        current = blur_sample(data, 3, pixel_area_m2=2.0)

        assert current.shape == (3, 4, 2)
        np.testing.assert_allclose(current, 6.0)

    def test_blur_sample_averages_pixel_block(self):
        """Each pixel value is the mean of its own N x N block."""
        data = np.zeros((6, 6, 1))
        data[0:3, 3:6, 0] = np.arange(9).reshape(3, 3)

        current = blur_sample(data, 3, pixel_area_m2=1.0)

        assert np.isclose(current[0, 1, 0], 4.0)
        assert current[0, 0, 0] == 0.0
        assert current[1, 1, 0] == 0.0

    def test_unsampled_scales_by_pixel_area(self):
        """With N=1 decimation is a multiplication by the pixel area."""
        pixel = PixelGrid(pitch_m=PITCH, size=(2, 2))
        weighted = RegisteredField(np.full((2, 2, 1), 10.0))

        current = FilterDecimator().decimate(weighted, pixel, SamplingSpec(1))

        np.testing.assert_allclose(current, 10.0 * PITCH ** 2)

    def test_supersampling_invariance(self):
        """N=1 and N=5 give the same current for a uniform field."""
        pixel = PixelGrid.with_fill_factor(PITCH, (3, 4), 0.36)
        weighter, decimator = ApertureWeighter(), FilterDecimator()

        coarse = weighter.weight(RegisteredField(np.full((3, 4, 1), 7.0)), pixel, SamplingSpec(1))
        fine = weighter.weight(
            RegisteredField(np.full((15, 20, 1), 7.0), samples_per_pixel=5), pixel, SamplingSpec(5)
        )

        np.testing.assert_allclose(
            decimator.decimate(fine, pixel, SamplingSpec(5)),
            decimator.decimate(coarse, pixel, SamplingSpec(1)),
            rtol=1e-10,
        )
