from __future__ import annotations

import numpy as np

from warpgrid.raster.canvas import RGBA, draw_pixel, fill_rect


MARKER_KINDS = ("square", "plus", "cross", "dot")


def draw_markers(dst: np.ndarray, xs: np.ndarray, ys: np.ndarray, color: RGBA, size: int = 3, kind: str = "square") -> None:
    if kind not in MARKER_KINDS:
        raise ValueError(f"unknown marker kind: {kind}")
    radius = max(0, size // 2)
    for x, y in zip(xs.tolist(), ys.tolist(), strict=True):
        if not (np.isfinite(x) and np.isfinite(y)):
            continue
        _draw_marker(dst, int(round(x)), int(round(y)), color=color, radius=radius, kind=kind)


def _draw_marker(dst: np.ndarray, x: int, y: int, color: RGBA, radius: int, kind: str) -> None:
    if kind == "dot" or radius == 0:
        draw_pixel(dst, x, y, color)
    elif kind == "square":
        fill_rect(dst, x - radius, y - radius, x + radius, y + radius, color)
    elif kind == "plus":
        for k in range(-radius, radius + 1):
            draw_pixel(dst, x + k, y, color)
            if k != 0:
                draw_pixel(dst, x, y + k, color)
    else:
        for k in range(-radius, radius + 1):
            draw_pixel(dst, x + k, y + k, color)
            if k != 0:
                draw_pixel(dst, x + k, y - k, color)
