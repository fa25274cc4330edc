"""
Unit tests for optical-to-sensor grid registration.
"""

import pytest
import numpy as np

from photo_tran.core.errors import ComputationFailure
from photo_tran.core.fields import CurrentDensityField, SpectralField
from photo_tran.core.registration import AxisTransform, GridRegistrar, GridTransform
from photo_tran.core.sensor import PixelGrid, SamplingSpec


def optical(rows, cols, spacing):
    return SpectralField(np.ones((rows, cols, 1)), [550.0], spacing, bin_width_nm=10.0)


class TestAxisTransform:
    """Tests for the centred affine index/position map."""

    def test_positions_centred(self):
        """Positions are symmetric about zero."""
        axis = AxisTransform(5, 2.0)
        np.testing.assert_allclose(axis.positions(), [-4.0, -2.0, 0.0, 2.0, 4.0])

    def test_even_count_has_no_centre_sample(self):
        """With an even count the origin falls between two samples."""
        axis = AxisTransform(4, 1.0)
        np.testing.assert_allclose(axis.positions(), [-1.5, -0.5, 0.5, 1.5])
        assert axis.center_index == 1.5

    def test_index_round_trip(self):
        """to_index inverts to_position."""
        axis = AxisTransform(7, 0.3)
        idx = np.arange(7)
        np.testing.assert_allclose(axis.to_index(axis.to_position(idx)), idx)

    def test_extent(self):
        """Extent spans the first and last sample."""
        assert AxisTransform(3, 1.5).extent_m == (-1.5, 1.5)

    def test_sensor_grid(self):
        """The sensor grid has rows*N samples at pitch/N."""
        pixel = PixelGrid(pitch_m=2e-6, size=(4, 3))
        grid = GridTransform.for_sensor(pixel, SamplingSpec(5))

        assert grid.shape == (20, 15)
        assert np.isclose(grid.cols.spacing_m, 0.4e-6)

    def test_subsample_centre_on_pixel_centre(self):
        """With odd N the centre sub-sample sits on the pixel centre."""
        pixel = PixelGrid(pitch_m=2e-6, size=(1, 4))
        fine = GridTransform.for_sensor(pixel, SamplingSpec(3)).cols.positions()
        coarse = GridTransform.for_sensor(pixel, SamplingSpec(1)).cols.positions()

        np.testing.assert_allclose(fine[1::3], coarse, atol=1e-18)


class TestGridRegistrar:
    """Tests for interpolation onto the sensor grid."""

    def test_uniform_field_stays_uniform(self):
        """A uniform field covering the sensor is reproduced exactly."""
        field = optical(32, 32, 0.5e-6)
        scd = CurrentDensityField(np.full((32, 32, 1), 3.0))
        pixel = PixelGrid(pitch_m=2e-6, size=(4, 4))

        registered = GridRegistrar().register(scd, field, pixel, SamplingSpec(5))

        assert registered.data.shape == (20, 20, 1)
        np.testing.assert_allclose(registered.data, 3.0)
        assert registered.samples_per_pixel == 5
        assert not registered.mosaicked

    def test_linear_ramp_interpolated(self):
        """A field equal to its x position is sampled at the sensor positions."""
        field = optical(11, 11, 1e-6)
        x = AxisTransform(11, 1e-6).positions()
        data = np.broadcast_to(x[np.newaxis, :, np.newaxis], (11, 11, 1)).copy()
        pixel = PixelGrid(pitch_m=1.5e-6, size=(2, 4))

        registered = GridRegistrar().register(
            CurrentDensityField(data), field, pixel, SamplingSpec(1)
        )

        expected = AxisTransform(4, 1.5e-6).positions()
        np.testing.assert_allclose(registered.data[0, :, 0], expected, atol=1e-18)
        np.testing.assert_allclose(registered.data[1, :, 0], expected, atol=1e-18)

    def test_outside_optical_extent_is_zero(self):
        """Sensor samples beyond the optical image receive no signal."""
        field = optical(4, 4, 0.5e-6)
        scd = CurrentDensityField(np.ones((4, 4, 1)))
        pixel = PixelGrid(pitch_m=2e-6, size=(4, 4))

        registered = GridRegistrar().register(scd, field, pixel, SamplingSpec(1))

        np.testing.assert_array_equal(registered.data, 0.0)

    def test_too_few_samples(self):
        """A single optical row cannot be interpolated."""
        field = optical(1, 5, 1e-6)
        scd = CurrentDensityField(np.ones((1, 5, 1)))
        pixel = PixelGrid(pitch_m=1e-6, size=(2, 2))

        with pytest.raises(ComputationFailure):
            GridRegistrar().register(scd, field, pixel, SamplingSpec(1))

    def test_mosaic_selects_pixel_channel(self):
        """With a colour filter map each sample keeps its pixel's channel."""
        field = optical(16, 16, 0.5e-6)
        data = np.zeros((16, 16, 2))
        data[..., 0] = 1.0
        data[..., 1] = 2.0
        pixel = PixelGrid(pitch_m=1e-6, size=(2, 2))
        cfa = np.array([[0, 1], [1, 0]])

        registered = GridRegistrar().register(
            CurrentDensityField(data), field, pixel, SamplingSpec(3), cfa_map=cfa
        )

        assert registered.mosaicked
        assert registered.data.shape == (6, 6, 1)
        np.testing.assert_allclose(registered.data[:3, :3, 0], 1.0)
        np.testing.assert_allclose(registered.data[:3, 3:, 0], 2.0)
        np.testing.assert_allclose(registered.data[3:, :3, 0], 2.0)
        np.testing.assert_allclose(registered.data[3:, 3:, 0], 1.0)
