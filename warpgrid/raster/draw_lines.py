from __future__ import annotations

import numpy as np

from warpgrid.raster.canvas import RGBA, fill_rect


def draw_polyline(dst: np.ndarray, xs: np.ndarray, ys: np.ndarray, color: RGBA, width: int = 1) -> None:
    """Draw pixel-space vertices as connected segments; undefined vertices split the line."""
    if xs.size != ys.size:
        raise ValueError("xs and ys must have the same length")
    if xs.size < 2:
        return
    finite = np.isfinite(xs) & np.isfinite(ys)
    for i in np.flatnonzero(finite[:-1] & finite[1:]):
        px, py = segment_pixels(xs[i], ys[i], xs[i + 1], ys[i + 1])
        _stamp(dst, px, py, color, width)


def segment_pixels(x0: float, y0: float, x1: float, y1: float) -> tuple[np.ndarray, np.ndarray]:
    """Integer pixels of a segment, one per step along its major axis, ends included."""
    ax, ay, bx, by = (int(round(v)) for v in (x0, y0, x1, y1))
    steps = max(abs(bx - ax), abs(by - ay))
    t = np.linspace(0.0, 1.0, steps + 1)
    px = np.rint(ax + t * (bx - ax)).astype(np.int64)
    py = np.rint(ay + t * (by - ay)).astype(np.int64)
    return px, py


def _stamp(dst: np.ndarray, px: np.ndarray, py: np.ndarray, color: RGBA, width: int) -> None:
    radius = max(0, width // 2) if width > 1 else 0
    h, w = dst.shape[:2]
    keep = (px >= -radius) & (px < w + radius) & (py >= -radius) & (py < h + radius)
    if radius == 0 and color[3] == 255:
        keep &= (px >= 0) & (px < w) & (py >= 0) & (py < h)
        dst[py[keep], px[keep], :3] = np.asarray(color[:3], dtype=np.uint8)
        dst[py[keep], px[keep], 3] = 255
        return
    for x, y in zip(px[keep].tolist(), py[keep].tolist()):
        fill_rect(dst, x - radius, y - radius, x + radius, y + radius, color)
