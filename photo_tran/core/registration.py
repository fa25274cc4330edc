"""
Registration of the optical grid onto the sensor grid.

Both grids are placed in one physical coordinate frame (meters) whose origin
is the geometric centre of each grid. Along an axis with n samples spaced s
apart, sample i sits at

    x(i) = (i - (n - 1) / 2) · s

so the optical image and the pixel array share their centre. The sensor side
is sampled N times per pixel (spacing pitch / N); with N odd the centre
sub-sample of every pixel coincides with the pixel centre.

Current density is linearly interpolated from the optical samples onto the
sensor samples. Sensor samples outside the optical image receive no signal.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy.interpolate import RegularGridInterpolator

from photo_tran.core.errors import ComputationFailure
from photo_tran.core.fields import CurrentDensityField, RegisteredField, SpectralField
from photo_tran.core.sensor import PixelGrid, SamplingSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AxisTransform:
    """Affine map between sample index and centred position along one axis.

    Attributes:
        n_samples: Number of samples along the axis
        spacing_m: Distance between neighbouring samples [m]
    """
    n_samples: int
    spacing_m: float

    @property
    def center_index(self) -> float:
        return (self.n_samples - 1) / 2.0

    @property
    def extent_m(self) -> Tuple[float, float]:
        """Positions of the first and last samples [m]."""
        half = self.center_index * self.spacing_m
        return -half, half

    def positions(self) -> np.ndarray:
        """Centred sample positions [m]."""
        return (np.arange(self.n_samples) - self.center_index) * self.spacing_m

    def to_position(self, index):
        return (np.asarray(index, dtype=float) - self.center_index) * self.spacing_m

    def to_index(self, position_m):
        return np.asarray(position_m, dtype=float) / self.spacing_m + self.center_index


@dataclass(frozen=True)
class GridTransform:
    """Row and column transforms of a 2-D grid."""
    rows: AxisTransform
    cols: AxisTransform

    @classmethod
    def for_optical_image(cls, optical_image: SpectralField) -> "GridTransform":
        dy, dx = optical_image.sample_spacing_m
        return cls(
            rows=AxisTransform(optical_image.rows, dy),
            cols=AxisTransform(optical_image.cols, dx),
        )

    @classmethod
    def for_sensor(cls, pixel: PixelGrid, sampling: SamplingSpec) -> "GridTransform":
        n = sampling.samples_per_pixel
        return cls(
            rows=AxisTransform(pixel.rows * n, pixel.height_m / n),
            cols=AxisTransform(pixel.cols * n, pixel.pitch_m / n),
        )

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows.n_samples, self.cols.n_samples


class GridRegistrar:
    """Resamples current density from the optical grid to the sensor grid."""

    def register(
        self,
        scd: CurrentDensityField,
        optical_image: SpectralField,
        pixel: PixelGrid,
        sampling: SamplingSpec,
        cfa_map: Optional[np.ndarray] = None,
    ) -> RegisteredField:
        """Interpolate the current density onto the (sub-)pixel grid.

        Args:
            scd: Current density on the optical grid [A/m²]
            optical_image: Source of the optical grid geometry
            pixel: Sensor pixel geometry
            sampling: Sub-pixel sampling
            cfa_map: Optional channel index per pixel [rows, cols]; when given
                each sample keeps only its pixel's channel

        Returns:
            RegisteredField [rows·N, cols·N, channel] (one channel when
            mosaicked)

        Raises:
            ComputationFailure: If the optical grid cannot be interpolated or
                the result is empty
        """
        data = scd.data
        if data.ndim != 3 or data.shape[0] < 2 or data.shape[1] < 2:
            raise ComputationFailure(
                f"Current density image of shape {data.shape} cannot be interpolated; "
                "at least 2x2 optical samples are required"
            )

        source = GridTransform.for_optical_image(optical_image)
        target = GridTransform.for_sensor(pixel, sampling)
        logger.debug(
            f"Registering {source.shape} optical samples "
            f"({source.cols.spacing_m * 1e6:.3f} um) onto {target.shape} sensor samples "
            f"({target.cols.spacing_m * 1e6:.3f} um)"
        )

        interpolator = RegularGridInterpolator(
            (source.rows.positions(), source.cols.positions()),
            data,
            method="linear",
            bounds_error=False,
            fill_value=0.0,
        )
        yy, xx = np.meshgrid(target.rows.positions(), target.cols.positions(), indexing="ij")
        points = np.column_stack([yy.ravel(), xx.ravel()])
        flat = interpolator(points).reshape(target.shape + (data.shape[2],))

        if flat.size == 0:
            raise ComputationFailure("Registered current density image is empty")

        mosaicked = False
        if cfa_map is not None:
            flat = self.mosaic(flat, cfa_map, sampling.samples_per_pixel)
            mosaicked = True

        return RegisteredField(
            data=flat,
            samples_per_pixel=sampling.samples_per_pixel,
            mosaicked=mosaicked,
        )

    @staticmethod
    def mosaic(data: np.ndarray, cfa_map: np.ndarray, samples_per_pixel: int) -> np.ndarray:
        """Keep, at every sample, only the channel of the pixel it lies in.

        Args:
            data: Registered field [rows·N, cols·N, channel]
            cfa_map: Channel index per pixel [rows, cols]
            samples_per_pixel: N

        Returns:
            Single-layer field [rows·N, cols·N, 1]
        """
        n = samples_per_pixel
        channel = np.repeat(np.repeat(cfa_map, n, axis=0), n, axis=1)
        selected = np.take_along_axis(data, channel[:, :, np.newaxis].astype(np.intp), axis=2)
        return selected
