from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from warpgrid.errors import BackendError
from warpgrid.raster import RGBA, draw_markers, draw_polyline, draw_text, new_canvas, text_size
from warpgrid.viewport import Viewport


Box = tuple[float, float, float, float]

DEFAULT_BACKGROUND: RGBA = (255, 255, 255, 255)
DEFAULT_INK: RGBA = (20, 20, 20, 255)
DEFAULT_CHAR_WIDTH = 0.012
DEFAULT_CHAR_HEIGHT = 0.02


class Backend(Protocol):
    """Graphics output used by the renderer; all coordinates are graphics coordinates.

    `just` is a two-letter justification: vertical (T, C, B) then horizontal
    (L, C, R), so "TC" anchors a label by the centre of its top edge.
    """

    def polyline(self, xs: np.ndarray, ys: np.ndarray) -> None: ...

    def marker(self, xs: np.ndarray, ys: np.ndarray, kind: str) -> None: ...

    def text(self, label: str, x: float, y: float, just: str = "CC") -> None: ...

    def text_box(self, label: str, x: float, y: float, just: str = "CC") -> Box: ...


def justify_box(x: float, y: float, width: float, height: float, just: str) -> Box:
    """Box of a `width` x `height` label anchored at (x, y) by `just`.

    "T" puts the anchor on the high-y side of the box, "B" on the low-y side.
    """
    if len(just) != 2 or just[0] not in "TCB" or just[1] not in "LCR":
        raise ValueError(f"invalid justification: {just!r}")
    vert, horiz = just[0], just[1]
    if horiz == "L":
        x0 = x
    elif horiz == "R":
        x0 = x - width
    else:
        x0 = x - 0.5 * width

    if vert == "C":
        y0 = y - 0.5 * height
    elif vert == "T":
        y0 = y - height
    else:
        y0 = y
    return (x0, y0, x0 + width, y0 + height)


def boxes_overlap(a: Box, b: Box) -> bool:
    return a[0] < b[2] and b[0] < a[2] and a[1] < b[3] and b[1] < a[3]


@dataclass(frozen=True)
class RecordedText:
    label: str
    x: float
    y: float
    just: str
    box: Box


@dataclass
class RecordingBackend:
    """In-memory backend; text metrics approximate every character as one fixed cell."""

    char_width: float = DEFAULT_CHAR_WIDTH
    char_height: float = DEFAULT_CHAR_HEIGHT
    polylines: list[np.ndarray] = field(default_factory=list)
    texts: list[RecordedText] = field(default_factory=list)
    markers: list[tuple[str, np.ndarray]] = field(default_factory=list)

    def polyline(self, xs: np.ndarray, ys: np.ndarray) -> None:
        self.polylines.append(np.column_stack((np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64))))

    def marker(self, xs: np.ndarray, ys: np.ndarray, kind: str) -> None:
        self.markers.append((kind, np.column_stack((np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64)))))

    def text(self, label: str, x: float, y: float, just: str = "CC") -> None:
        self.texts.append(RecordedText(label=label, x=x, y=y, just=just, box=self.text_box(label, x, y, just)))

    def text_box(self, label: str, x: float, y: float, just: str = "CC") -> Box:
        return justify_box(x, y, self.char_width * len(label), self.char_height, just)

    def clear(self) -> None:
        self.polylines.clear()
        self.texts.clear()
        self.markers.clear()


class RasterBackend:
    """Draws onto a numpy RGBA canvas; `window` is the graphics region mapped onto it.

    Pixel rows grow downwards, so graphics y is flipped unless the window is
    itself y-reversed. An x-reversed window puts its high x on the left.
    """

    def __init__(
        self,
        width: int,
        height: int,
        window: Viewport,
        *,
        background: RGBA = DEFAULT_BACKGROUND,
        color: RGBA = DEFAULT_INK,
        line_width: int = 1,
        marker_size: int = 5,
        font_size_px: float = 12.0,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be > 0")
        self.width = width
        self.height = height
        self.window = window
        self.color = color
        self.line_width = line_width
        self.marker_size = marker_size
        self.font_size_px = font_size_px
        self.canvas = new_canvas(width, height, background)
        self._sx = (width - 1) / window.width
        self._sy = (height - 1) / window.height

    def to_pixels(self, xs: np.ndarray, ys: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        if self.window.x_reversed:
            px = (self.window.xhi - np.asarray(xs, dtype=np.float64)) * self._sx
        else:
            px = (np.asarray(xs, dtype=np.float64) - self.window.xlo) * self._sx
        if self.window.y_reversed:
            py = (np.asarray(ys, dtype=np.float64) - self.window.ylo) * self._sy
        else:
            py = (self.window.yhi - np.asarray(ys, dtype=np.float64)) * self._sy
        return px, py

    def polyline(self, xs: np.ndarray, ys: np.ndarray) -> None:
        px, py = self.to_pixels(xs, ys)
        draw_polyline(self.canvas, px, py, self.color, width=self.line_width)

    def marker(self, xs: np.ndarray, ys: np.ndarray, kind: str) -> None:
        px, py = self.to_pixels(xs, ys)
        try:
            draw_markers(self.canvas, px, py, self.color, size=self.marker_size, kind=kind)
        except ValueError as exc:
            raise BackendError("marker", str(exc), kind=kind) from exc

    def text_box(self, label: str, x: float, y: float, just: str = "CC") -> Box:
        w_px, h_px = self._measure(label)
        return justify_box(x, y, w_px / self._sx, h_px / self._sy, just)

    def text(self, label: str, x: float, y: float, just: str = "CC") -> None:
        x0, y0, x1, y1 = self.text_box(label, x, y, just)
        px, py = self.to_pixels(np.asarray([x0, x1]), np.asarray([y0, y1]))
        try:
            draw_text(
                self.canvas,
                int(round(float(px.min()))),
                int(round(float(py.min()))),
                label,
                self.color,
                font_size_px=self.font_size_px,
            )
        except OSError as exc:
            raise BackendError("text", "font rendering failed", label=label) from exc

    def to_rgba(self) -> np.ndarray:
        return self.canvas.copy()

    def _measure(self, label: str) -> tuple[int, int]:
        try:
            return text_size(label, font_size_px=self.font_size_px)
        except OSError as exc:
            raise BackendError("text_box", "font metrics unavailable", label=label) from exc
