from __future__ import annotations

from typing import Any

from warpgrid.backend import Backend, RasterBackend
from warpgrid.frames import CartesianFrame, Frame
from warpgrid.plot import Plot
from warpgrid.transforms import Transform
from warpgrid.viewport import Viewport


DEFAULT_BOX = (0.0, 1.0, 0.0, 1.0)


def plot(
    transform: Transform,
    frame: Frame | None = None,
    *,
    box: tuple[float, float, float, float] = DEFAULT_BOX,
    backend: Backend | None = None,
    width: int | None = None,
    height: int | None = None,
    **attributes: Any,
) -> Plot:
    """Build a Plot over graphics box `(x1, x2, y1, y2)`.

    Giving `width`/`height` without a backend creates a RasterBackend of that
    pixel size covering the box. Remaining keywords set plot attributes.
    """
    viewport = Viewport.from_box(*box)
    if frame is None:
        frame = CartesianFrame(transform.nout)
    if backend is None and (width is not None or height is not None):
        if width is None:
            assert height is not None
            width = max(1, int(round(height * viewport.width / viewport.height)))
        elif height is None:
            height = max(1, int(round(width * viewport.height / viewport.width)))
        backend = RasterBackend(width, height, viewport)
    return Plot(transform, frame, viewport, backend=backend).set(**attributes)
