from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Callable, Protocol, Sequence

import numpy as np


# Undefined coordinates are NaN throughout; transforms never raise for them.
UNDEFINED = float("nan")

ArrayFn = Callable[[np.ndarray], np.ndarray]


class Transform(Protocol):
    """Mapping between graphics space and physical space.

    `transform(points, forward=True)` maps an `(n, nin)` batch of graphics
    points to physical points; `forward=False` maps physical to graphics.
    Output coordinates that cannot be computed are UNDEFINED.
    """

    nin: int
    nout: int

    def transform(self, points: np.ndarray, forward: bool = True) -> np.ndarray: ...


def as_points(points: Sequence[Sequence[float]] | np.ndarray, naxes: int) -> np.ndarray:
    arr = np.asarray(points, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2 or arr.shape[1] != naxes:
        raise ValueError(f"expected points with {naxes} coordinates, got shape {arr.shape}")
    return arr


def is_defined(points: np.ndarray) -> np.ndarray:
    """Row mask: True where every coordinate of a point is defined."""
    arr = np.asarray(points, dtype=np.float64)
    if arr.ndim == 1:
        return np.isfinite(arr)
    return np.all(np.isfinite(arr), axis=1)


def _undefine_rows(out: np.ndarray, bad: np.ndarray) -> np.ndarray:
    if np.any(bad):
        out = out.copy()
        out[bad] = UNDEFINED
    return out


@dataclass(frozen=True)
class LinearTransform:
    """Per-axis linear map: physical = graphics * scale + offset."""

    scale: tuple[float, ...]
    offset: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.scale) != len(self.offset):
            raise ValueError("scale and offset must have the same length")
        if any(s == 0 for s in self.scale):
            raise ValueError("linear transform scale must be non-zero")

    @classmethod
    def from_ranges(
        cls,
        graphics: Sequence[tuple[float, float]],
        physical: Sequence[tuple[float, float]],
    ) -> "LinearTransform":
        scale: list[float] = []
        offset: list[float] = []
        for (g0, g1), (p0, p1) in zip(graphics, physical, strict=True):
            if g1 == g0:
                raise ValueError("graphics range must have non-zero span")
            s = (p1 - p0) / (g1 - g0)
            scale.append(float(s))
            offset.append(float(p0 - g0 * s))
        return cls(scale=tuple(scale), offset=tuple(offset))

    @property
    def nin(self) -> int:
        return len(self.scale)

    @property
    def nout(self) -> int:
        return len(self.scale)

    def transform(self, points: np.ndarray, forward: bool = True) -> np.ndarray:
        pts = as_points(points, self.nin)
        scale = np.asarray(self.scale, dtype=np.float64)
        offset = np.asarray(self.offset, dtype=np.float64)
        if forward:
            return pts * scale + offset
        return (pts - offset) / scale


@dataclass(frozen=True)
class FunctionTransform:
    """Transform built from two batch callables operating on `(n, k)` arrays."""

    forward_fn: ArrayFn
    inverse_fn: ArrayFn
    nin: int = 2
    nout: int = 2

    def transform(self, points: np.ndarray, forward: bool = True) -> np.ndarray:
        pts = as_points(points, self.nin if forward else self.nout)
        fn = self.forward_fn if forward else self.inverse_fn
        width = self.nout if forward else self.nin
        with np.errstate(all="ignore"):
            out = np.asarray(fn(pts), dtype=np.float64).reshape(pts.shape[0], width)
        return np.where(np.isfinite(out), out, UNDEFINED)


@dataclass(frozen=True)
class PartialTransform:
    """Restricts another transform to the physical points accepted by `valid`."""

    base: Transform
    valid: Callable[[np.ndarray], np.ndarray]

    @property
    def nin(self) -> int:
        return self.base.nin

    @property
    def nout(self) -> int:
        return self.base.nout

    def transform(self, points: np.ndarray, forward: bool = True) -> np.ndarray:
        if forward:
            out = self.base.transform(points, forward=True)
            with np.errstate(invalid="ignore"):
                ok = np.asarray(self.valid(out), dtype=bool)
            return _undefine_rows(out, ~ok)
        pts = as_points(points, self.nout)
        with np.errstate(invalid="ignore"):
            ok = np.asarray(self.valid(pts), dtype=bool)
        out = self.base.transform(pts, forward=False)
        return _undefine_rows(out, ~ok)


@dataclass(frozen=True)
class ChainedTransform:
    """`first` followed by `second` in the forward direction."""

    first: Transform
    second: Transform

    @property
    def nin(self) -> int:
        return self.first.nin

    @property
    def nout(self) -> int:
        return self.second.nout

    def transform(self, points: np.ndarray, forward: bool = True) -> np.ndarray:
        if forward:
            return self.second.transform(self.first.transform(points, True), True)
        return self.first.transform(self.second.transform(points, False), False)


@dataclass(frozen=True)
class OrthographicTransform:
    """Orthographic sky projection: graphics (x, y) <-> (longitude, latitude) in degrees.

    Graphics points outside the projected disk, and sky points on the far
    hemisphere, are undefined.
    """

    lon0: float = 0.0
    lat0: float = 0.0
    radius: float = 1.0
    centre: tuple[float, float] = (0.0, 0.0)
    nin: int = 2
    nout: int = 2

    def transform(self, points: np.ndarray, forward: bool = True) -> np.ndarray:
        pts = as_points(points, 2)
        phi0 = math.radians(self.lat0)
        with np.errstate(all="ignore"):
            if forward:
                out = self._to_sky(pts, phi0)
            else:
                out = self._to_graphics(pts, phi0)
        return np.where(np.isfinite(out), out, UNDEFINED)

    def _to_sky(self, pts: np.ndarray, phi0: float) -> np.ndarray:
        u = (pts[:, 0] - self.centre[0]) / self.radius
        v = (pts[:, 1] - self.centre[1]) / self.radius
        rho = np.hypot(u, v)
        inside = rho <= 1.0
        c = np.arcsin(np.clip(rho, 0.0, 1.0))
        sin_c = np.sin(c)
        cos_c = np.cos(c)
        safe_rho = np.where(rho > 0.0, rho, 1.0)
        lat = np.arcsin(np.clip(cos_c * math.sin(phi0) + v * sin_c * math.cos(phi0) / safe_rho, -1.0, 1.0))
        dlon = np.arctan2(u * sin_c, rho * cos_c * math.cos(phi0) - v * sin_c * math.sin(phi0))
        lat = np.where(rho > 0.0, lat, phi0)
        dlon = np.where(rho > 0.0, dlon, 0.0)
        lon = np.mod(self.lon0 + np.degrees(dlon), 360.0)
        out = np.column_stack((lon, np.degrees(lat)))
        out[~inside] = UNDEFINED
        return out

    def _to_graphics(self, pts: np.ndarray, phi0: float) -> np.ndarray:
        lam = np.radians(pts[:, 0] - self.lon0)
        phi = np.radians(pts[:, 1])
        cos_c = math.sin(phi0) * np.sin(phi) + math.cos(phi0) * np.cos(phi) * np.cos(lam)
        x = self.radius * np.cos(phi) * np.sin(lam) + self.centre[0]
        y = self.radius * (math.cos(phi0) * np.sin(phi) - math.sin(phi0) * np.cos(phi) * np.cos(lam)) + self.centre[1]
        out = np.column_stack((x, y))
        far = ~(cos_c >= 0.0) | (np.abs(pts[:, 1]) > 90.0)
        out[far] = UNDEFINED
        return out
