from __future__ import annotations

from dataclasses import dataclass
import logging

import numpy as np

from warpgrid.errors import InsufficientDataError
from warpgrid.frames import Frame
from warpgrid.transforms import Transform, is_defined
from warpgrid.viewport import Viewport


LOGGER = logging.getLogger(__name__)

DEFAULT_SAMPLE_DIM = 20
MAX_SAMPLE_DIM = 640
MIN_DEFINED_SAMPLES = 4

Bounds = tuple[float, float, float, float]


@dataclass(frozen=True, eq=False)
class GridSampleSet:
    """Square lattice of graphics points and their frame-normalized physical values.

    Row `j * dim + i` holds the point in column `i` (x) of lattice row `j` (y).
    """

    dim: int
    bounds: Bounds
    graphics: np.ndarray
    physical: np.ndarray
    defined: np.ndarray
    defined_fraction: float

    @property
    def count(self) -> int:
        return int(np.count_nonzero(self.defined))

    def values(self, axis: int) -> np.ndarray:
        """Defined values of one physical axis, in lattice order."""
        return self.physical[self.defined, axis]

    def defined_physical(self) -> np.ndarray:
        return self.physical[self.defined]


def lattice(bounds: Bounds, dim: int) -> np.ndarray:
    if dim < 2:
        raise ValueError("sample dimension must be >= 2")
    x0, x1, y0, y1 = bounds
    xs = np.linspace(x0, x1, dim)
    ys = np.linspace(y0, y1, dim)
    gx, gy = np.meshgrid(xs, ys)
    return np.column_stack((gx.ravel(), gy.ravel()))


def build_sample_set(
    transform: Transform,
    frame: Frame,
    viewport: Viewport,
    bounds: Bounds | None = None,
    dim: int = DEFAULT_SAMPLE_DIM,
) -> GridSampleSet:
    if bounds is None:
        bounds = (viewport.xlo, viewport.xhi, viewport.ylo, viewport.yhi)
    graphics = lattice(bounds, dim)
    physical = frame.norm(transform.transform(graphics, forward=True))
    defined = is_defined(physical)
    area = abs(bounds[1] - bounds[0]) * abs(bounds[3] - bounds[2])
    fraction = float(np.count_nonzero(defined)) / defined.size
    fraction *= min(1.0, area / (viewport.width * viewport.height))
    return GridSampleSet(
        dim=dim,
        bounds=bounds,
        graphics=graphics,
        physical=physical,
        defined=defined,
        defined_fraction=fraction,
    )


def find_sample_set(
    transform: Transform,
    frame: Frame,
    viewport: Viewport,
    dim: int = DEFAULT_SAMPLE_DIM,
    max_dim: int = MAX_SAMPLE_DIM,
) -> GridSampleSet:
    """Sample set covering the defined part of the viewport.

    The lattice is doubled until it holds at least four defined samples, then
    its bounds are shrunk to the defined samples plus one lattice cell and the
    region is resampled at the same dimension.
    """
    samples = build_sample_set(transform, frame, viewport, dim=dim)
    while samples.count < MIN_DEFINED_SAMPLES and dim < max_dim:
        dim = min(max_dim, dim * 2)
        samples = build_sample_set(transform, frame, viewport, dim=dim)
    if samples.count < MIN_DEFINED_SAMPLES:
        raise InsufficientDataError(
            "find_sample_set",
            "too few defined samples in the viewport",
            found=samples.count,
            max_dim=max_dim,
        )

    pts = samples.graphics[samples.defined]
    cell_x = viewport.width / (dim - 1)
    cell_y = viewport.height / (dim - 1)
    bounds = (
        max(viewport.xlo, float(pts[:, 0].min()) - cell_x),
        min(viewport.xhi, float(pts[:, 0].max()) + cell_x),
        max(viewport.ylo, float(pts[:, 1].min()) - cell_y),
        min(viewport.yhi, float(pts[:, 1].max()) + cell_y),
    )
    shrunk = build_sample_set(transform, frame, viewport, bounds=bounds, dim=dim)
    if shrunk.count < MIN_DEFINED_SAMPLES:
        shrunk = samples
    LOGGER.debug(
        "sample set dim=%d defined=%d fraction=%.3f bounds=%s",
        shrunk.dim,
        shrunk.count,
        samples.defined_fraction,
        bounds,
    )
    # The defined fraction refers to the whole viewport, not the shrunk bounds.
    return GridSampleSet(
        dim=shrunk.dim,
        bounds=shrunk.bounds,
        graphics=shrunk.graphics,
        physical=shrunk.physical,
        defined=shrunk.defined,
        defined_fraction=samples.defined_fraction,
    )
