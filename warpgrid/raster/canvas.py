from __future__ import annotations

import numpy as np


RGBA = tuple[int, int, int, int]


def new_canvas(width: int, height: int, color: RGBA = (0, 0, 0, 255)) -> np.ndarray:
    if width <= 0 or height <= 0:
        raise ValueError("canvas width/height must be > 0")
    return np.tile(np.asarray(color, dtype=np.uint8), (height, width, 1))


def blend_coverage(dst: np.ndarray, x: int, y: int, coverage: np.ndarray, color: RGBA) -> None:
    """Composite `color` over `dst` through a 0..1 coverage patch whose top-left is (x, y).

    The patch may hang over any edge of the canvas; only the overlap is touched.
    """
    h, w = coverage.shape
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(dst.shape[1], x + w), min(dst.shape[0], y + h)
    if x1 <= x0 or y1 <= y0:
        return
    alpha = (color[3] / 255.0) * coverage[y0 - y : y1 - y, x0 - x : x1 - x]
    if not np.any(alpha > 0):
        return

    patch = dst[y0:y1, x0:x1]
    under_a = patch[:, :, 3].astype(np.float32) / 255.0
    out_a = alpha + under_a * (1.0 - alpha)
    src = np.asarray(color[:3], dtype=np.float32)
    rgb = src * alpha[:, :, None] + patch[:, :, :3].astype(np.float32) * (under_a * (1.0 - alpha))[:, :, None]
    rgb /= np.where(out_a > 1e-6, out_a, 1.0)[:, :, None]
    patch[:, :, :3] = np.clip(rgb, 0, 255).astype(np.uint8)
    patch[:, :, 3] = np.clip(out_a * 255.0, 0, 255).astype(np.uint8)


def draw_pixel(dst: np.ndarray, x: int, y: int, color: RGBA) -> None:
    blend_coverage(dst, x, y, np.ones((1, 1), dtype=np.float32), color)


def fill_rect(dst: np.ndarray, x0: int, y0: int, x1: int, y1: int, color: RGBA) -> None:
    """Blend a filled rectangle, corners inclusive."""
    xa, xb = sorted((x0, x1))
    ya, yb = sorted((y0, y1))
    blend_coverage(dst, xa, ya, np.ones((yb - ya + 1, xb - xa + 1), dtype=np.float32), color)
