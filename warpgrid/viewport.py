from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np


Edge = Literal["bottom", "top", "left", "right"]
CombineMode = Literal["and", "or"]

EDGES: tuple[Edge, ...] = ("bottom", "right", "top", "left")


@dataclass(frozen=True)
class Viewport:
    """Rectangular drawing region in graphics space.

    The reversal flags record whether the device's natural axis direction runs
    against increasing graphics value (e.g. raster rows growing downwards).
    """

    xlo: float
    xhi: float
    ylo: float
    yhi: float
    x_reversed: bool = False
    y_reversed: bool = False

    def __post_init__(self) -> None:
        values = (self.xlo, self.xhi, self.ylo, self.yhi)
        if not all(np.isfinite(v) for v in values):
            raise ValueError("viewport bounds must be finite")
        if self.xhi <= self.xlo or self.yhi <= self.ylo:
            raise ValueError("viewport must have positive width and height")

    @classmethod
    def from_box(cls, x1: float, x2: float, y1: float, y2: float) -> "Viewport":
        return cls(
            xlo=float(min(x1, x2)),
            xhi=float(max(x1, x2)),
            ylo=float(min(y1, y2)),
            yhi=float(max(y1, y2)),
            x_reversed=x1 > x2,
            y_reversed=y1 > y2,
        )

    @property
    def width(self) -> float:
        return self.xhi - self.xlo

    @property
    def height(self) -> float:
        return self.yhi - self.ylo

    @property
    def min_dimension(self) -> float:
        return min(self.width, self.height)

    def contains(self, points: np.ndarray, margin: float = 0.0) -> np.ndarray:
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        return (
            (pts[:, 0] >= self.xlo - margin)
            & (pts[:, 0] <= self.xhi + margin)
            & (pts[:, 1] >= self.ylo - margin)
            & (pts[:, 1] <= self.yhi + margin)
        )

    def edge_value(self, edge: Edge) -> float:
        if edge == "bottom":
            return self.yhi if self.y_reversed else self.ylo
        if edge == "top":
            return self.ylo if self.y_reversed else self.yhi
        if edge == "left":
            return self.xhi if self.x_reversed else self.xlo
        if edge == "right":
            return self.xlo if self.x_reversed else self.xhi
        raise ValueError(f"unknown edge: {edge}")

    def outward(self, edge: Edge) -> tuple[float, float]:
        """Unit vector pointing out of the viewport across `edge`."""
        value = self.edge_value(edge)
        if edge in ("bottom", "top"):
            return (0.0, 1.0) if value == self.yhi else (0.0, -1.0)
        return (1.0, 0.0) if value == self.xhi else (-1.0, 0.0)

    def edges_at(self, x: float, y: float, tol: float) -> list[Edge]:
        """Edges a point lies on (within `tol`); two at a corner."""
        out: list[Edge] = []
        for edge in EDGES:
            value = self.edge_value(edge)
            coord = y if edge in ("bottom", "top") else x
            if abs(coord - value) <= tol:
                out.append(edge)
        return out

    def edge_of(self, x: float, y: float, tol: float, direction: tuple[float, float] | None = None) -> Edge | None:
        """Name the edge a point lies on (within `tol`), or None.

        At a corner, `direction` (pointing into the viewport) picks the edge
        it crosses most squarely.
        """
        edges = self.edges_at(x, y, tol)
        if not edges:
            return None
        if direction is None or len(edges) == 1:
            return edges[0]
        return min(edges, key=lambda e: self.outward(e)[0] * direction[0] + self.outward(e)[1] * direction[1])


@dataclass(frozen=True)
class ClipVolume:
    """Auxiliary region, defined in any plot frame, outside which nothing is drawn."""

    frame: str
    lower: tuple[float, ...]
    upper: tuple[float, ...]
    combine: CombineMode = "and"

    def __post_init__(self) -> None:
        if len(self.lower) != len(self.upper):
            raise ValueError("clip lower/upper bounds must have the same length")
        if not self.lower:
            raise ValueError("clip bounds must have at least one axis")
        if self.combine not in ("and", "or"):
            raise ValueError("combine must be 'and' or 'or'")

    def inside(self, coords: np.ndarray) -> np.ndarray:
        """Inclusion mask for points expressed in the clip frame.

        Points with any undefined coordinate are outside.
        """
        pts = np.asarray(coords, dtype=np.float64)
        if pts.ndim == 1:
            pts = pts.reshape(1, -1)
        if pts.shape[1] != len(self.lower):
            raise ValueError(f"clip volume has {len(self.lower)} axes, points have {pts.shape[1]}")
        per_axis = np.empty(pts.shape, dtype=bool)
        for axis, (lo, hi) in enumerate(zip(self.lower, self.upper, strict=True)):
            values = pts[:, axis]
            if lo <= hi:
                per_axis[:, axis] = (values >= lo) & (values <= hi)
            else:
                # Reversed bounds select everything outside [hi, lo].
                per_axis[:, axis] = (values < hi) | (values > lo)
        if self.combine == "and":
            mask = np.all(per_axis, axis=1)
        else:
            mask = np.any(per_axis, axis=1)
        return mask & np.all(np.isfinite(pts), axis=1)
