from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Literal, Protocol

import numpy as np

from warpgrid.frames import Frame
from warpgrid.transforms import UNDEFINED, Transform, is_defined


TangentPolicy = Literal["shorter", "forward", "backward"]


class Evaluator(Protocol):
    """Maps an array of curve parameters t in [0, 1] to `(n, 2)` graphics points."""

    def __call__(self, t: np.ndarray) -> np.ndarray: ...


def _to_graphics(transform: Transform, physical: np.ndarray) -> np.ndarray:
    graphics = np.asarray(transform.transform(physical, forward=False), dtype=np.float64)
    if graphics.ndim != 2 or graphics.shape[1] != 2:
        raise ValueError(f"transform must produce 2-D graphics points, got shape {graphics.shape}")
    bad = ~is_defined(physical)
    if np.any(bad):
        graphics = graphics.copy()
        graphics[bad] = UNDEFINED
    return graphics


@dataclass(frozen=True)
class AxisLineSampler:
    """Line of constant physical coordinate: axis `axis` varies by `length` from `start`."""

    transform: Transform
    start: tuple[float, ...]
    axis: int
    length: float

    def __post_init__(self) -> None:
        if not 0 <= self.axis < len(self.start):
            raise ValueError(f"axis {self.axis} out of range for a {len(self.start)}-D point")

    @property
    def degenerate(self) -> bool:
        return self.length == 0 or not np.all(np.isfinite(self.start)) or not np.isfinite(self.length)

    def physical(self, t: np.ndarray) -> np.ndarray:
        tt = np.atleast_1d(np.asarray(t, dtype=np.float64))
        pts = np.repeat(np.asarray(self.start, dtype=np.float64).reshape(1, -1), tt.size, axis=0)
        pts[:, self.axis] += tt * self.length
        return pts

    def __call__(self, t: np.ndarray) -> np.ndarray:
        return _to_graphics(self.transform, self.physical(t))


@dataclass(frozen=True)
class GeodesicSampler:
    """Frame geodesic from `start` to `end`."""

    transform: Transform
    frame: Frame
    start: tuple[float, ...]
    end: tuple[float, ...]
    _distance: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        dist = self.frame.distance(self.start, self.end)
        object.__setattr__(self, "_distance", float(dist))

    @property
    def distance(self) -> float:
        return self._distance

    @property
    def degenerate(self) -> bool:
        return not np.isfinite(self._distance) or self._distance == 0.0

    def physical(self, t: np.ndarray) -> np.ndarray:
        tt = np.atleast_1d(np.asarray(t, dtype=np.float64))
        if not np.isfinite(self._distance):
            return np.full((tt.size, len(self.start)), UNDEFINED)
        return self.frame.offset(self.start, self.end, tt * self._distance)

    def __call__(self, t: np.ndarray) -> np.ndarray:
        return _to_graphics(self.transform, self.physical(t))


@dataclass(frozen=True)
class PolyGeodesicSampler:
    """Consecutive geodesics through `points`, with t split evenly across the pieces."""

    transform: Transform
    frame: Frame
    points: tuple[tuple[float, ...], ...]

    def __post_init__(self) -> None:
        if len(self.points) < 2:
            raise ValueError("a poly-curve needs at least two points")

    @property
    def degenerate(self) -> bool:
        pieces = len(self.points) - 1
        dists = [self.frame.distance(self.points[i], self.points[i + 1]) for i in range(pieces)]
        return not any(np.isfinite(d) and d > 0 for d in dists)

    def physical(self, t: np.ndarray) -> np.ndarray:
        tt = np.atleast_1d(np.asarray(t, dtype=np.float64))
        pieces = len(self.points) - 1
        scaled = np.clip(tt, 0.0, 1.0) * pieces
        index = np.minimum(np.floor(scaled).astype(np.int64), pieces - 1)
        local = scaled - index
        out = np.full((tt.size, len(self.points[0])), UNDEFINED)
        for piece in np.unique(index):
            sel = index == piece
            a = self.points[int(piece)]
            b = self.points[int(piece) + 1]
            dist = self.frame.distance(a, b)
            if not np.isfinite(dist):
                continue
            out[sel] = self.frame.offset(a, b, local[sel] * dist)
        return out

    def __call__(self, t: np.ndarray) -> np.ndarray:
        return _to_graphics(self.transform, self.physical(t))


@dataclass(frozen=True)
class GraphicsLineSampler:
    """Straight graphics segment, undefined wherever the transform is undefined."""

    transform: Transform
    p0: tuple[float, float]
    p1: tuple[float, float]

    @property
    def degenerate(self) -> bool:
        return tuple(self.p0) == tuple(self.p1)

    def __call__(self, t: np.ndarray) -> np.ndarray:
        tt = np.atleast_1d(np.asarray(t, dtype=np.float64)).reshape(-1, 1)
        a = np.asarray(self.p0, dtype=np.float64).reshape(1, 2)
        b = np.asarray(self.p1, dtype=np.float64).reshape(1, 2)
        pts = a + tt * (b - a)
        physical = self.transform.transform(pts, forward=True)
        pts[~is_defined(physical)] = UNDEFINED
        return pts


@dataclass(frozen=True)
class PolylineSampler:
    """Graphics polyline through `vertices`, parameterised by arc length."""

    vertices: np.ndarray
    knots: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        pts = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 2)
        if pts.shape[0] < 2:
            raise ValueError("a polyline needs at least two vertices")
        steps = np.hypot(*np.diff(pts, axis=0).T)
        total = float(steps.sum())
        knots = np.concatenate(([0.0], np.cumsum(steps)))
        object.__setattr__(self, "vertices", pts)
        object.__setattr__(self, "knots", knots / total if total > 0 else knots)

    @property
    def degenerate(self) -> bool:
        return not self.knots[-1] > 0.0

    def __call__(self, t: np.ndarray) -> np.ndarray:
        tt = np.clip(np.atleast_1d(np.asarray(t, dtype=np.float64)), 0.0, 1.0)
        x = np.interp(tt, self.knots, self.vertices[:, 0])
        y = np.interp(tt, self.knots, self.vertices[:, 1])
        return np.column_stack((x, y))


@dataclass(frozen=True)
class ClippedSampler:
    """Masks the points of `inner` that fail `inside` (graphics points -> bool mask)."""

    inner: Evaluator
    inside: Callable[[np.ndarray], np.ndarray]

    @property
    def degenerate(self) -> bool:
        return bool(getattr(self.inner, "degenerate", False))

    def __call__(self, t: np.ndarray) -> np.ndarray:
        pts = np.array(self.inner(t), dtype=np.float64)
        ok = np.asarray(self.inside(pts), dtype=bool) & is_defined(pts)
        pts[~ok] = UNDEFINED
        return pts


def curve_tangent(
    evaluator: Evaluator,
    t: float,
    dt: float = 1e-4,
    policy: TangentPolicy = "shorter",
) -> tuple[float, float] | None:
    """Unit tangent (direction of increasing t) at parameter `t`, or None.

    Forward and backward finite differences are both formed. The "shorter"
    policy keeps whichever difference vector is shorter, on the grounds that a
    long one more likely straddles a discontinuity; an undefined difference is
    never chosen. This is a heuristic: near a discontinuity it can pick the
    wrong side.
    """
    samples = evaluator(np.asarray([t - dt, t, t + dt], dtype=np.float64))
    back = samples[1] - samples[0]
    fwd = samples[2] - samples[1]
    back_ok = bool(np.all(np.isfinite(back))) and float(np.hypot(*back)) > 0.0
    fwd_ok = bool(np.all(np.isfinite(fwd))) and float(np.hypot(*fwd)) > 0.0

    if policy == "forward":
        chosen = fwd if fwd_ok else (back if back_ok else None)
    elif policy == "backward":
        chosen = back if back_ok else (fwd if fwd_ok else None)
    elif policy == "shorter":
        if fwd_ok and back_ok:
            chosen = fwd if float(np.hypot(*fwd)) <= float(np.hypot(*back)) else back
        elif fwd_ok:
            chosen = fwd
        elif back_ok:
            chosen = back
        else:
            chosen = None
    else:
        raise ValueError(f"unknown tangent policy: {policy}")

    if chosen is None:
        return None
    norm = float(np.hypot(*chosen))
    return (float(chosen[0] / norm), float(chosen[1] / norm))
