from __future__ import annotations

from abc import ABC, abstractmethod
import math
from typing import Sequence

import numpy as np

from warpgrid.transforms import UNDEFINED, as_points


# Minor divisions for each nice mantissa.
_MINOR_BY_MANTISSA = {1.0: 5, 2.0: 4, 2.5: 5, 5.0: 5, 10.0: 5}

# Angular gaps (degrees) preferred over plain decimal rounding at and above 1 degree.
_ANGULAR_GAPS = (1.0, 2.0, 3.0, 5.0, 10.0, 15.0, 20.0, 30.0, 45.0, 60.0, 90.0, 120.0, 180.0)
_ANGULAR_MINOR = {
    1.0: 4,
    2.0: 4,
    3.0: 3,
    5.0: 5,
    10.0: 5,
    15.0: 3,
    20.0: 4,
    30.0: 3,
    45.0: 3,
    60.0: 4,
    90.0: 3,
    120.0: 4,
    180.0: 4,
}


def nice_number(value: float, *, round_result: bool = True) -> float:
    if not np.isfinite(value) or value <= 0:
        raise ValueError("nice_number requires a positive finite value")
    exp = math.floor(math.log10(value))
    frac = value / (10**exp)

    if round_result:
        if frac < 1.5:
            nice_frac = 1.0
        elif frac < 3.0:
            nice_frac = 2.0
        elif frac < 7.0:
            nice_frac = 5.0
        else:
            nice_frac = 10.0
    else:
        if frac <= 1.0:
            nice_frac = 1.0
        elif frac <= 2.0:
            nice_frac = 2.0
        elif frac <= 5.0:
            nice_frac = 5.0
        else:
            nice_frac = 10.0

    return float(nice_frac * (10**exp))


def _nice_gap(suggested: float) -> tuple[float, int]:
    gap = nice_number(abs(suggested), round_result=True)
    exp = math.floor(math.log10(gap))
    mantissa = round(gap / (10**exp), 6)
    return gap, _MINOR_BY_MANTISSA.get(mantissa, 5)


def format_value(value: float, digits: int) -> str:
    if not np.isfinite(value):
        return str(value)
    digits = max(1, min(17, int(digits)))
    out = f"{value:.{digits}g}"
    if out in ("-0", "-0.0"):
        out = "0"
    return out


class Frame(ABC):
    """Coordinate services for a physical frame.

    Subclasses describe how coordinates wrap, how geodesics run between two
    points, which gaps read as round numbers, and how values print.
    """

    naxes: int = 2

    def period(self, axis: int) -> float | None:
        return None

    def axis_bounds(self, axis: int) -> tuple[float | None, float | None]:
        return (None, None)

    def norm_axis(self, axis: int, values: np.ndarray) -> np.ndarray:
        out = np.asarray(values, dtype=np.float64).copy()
        period = self.period(axis)
        if period is not None:
            out = np.mod(out, period)
            # mod can return `period` itself for tiny negative inputs
            out[out >= period] = 0.0
        lo, hi = self.axis_bounds(axis)
        if lo is not None:
            out[out < lo] = UNDEFINED
        if hi is not None:
            out[out > hi] = UNDEFINED
        return out

    def norm(self, points: np.ndarray) -> np.ndarray:
        pts = as_points(points, self.naxes).copy()
        for axis in range(self.naxes):
            pts[:, axis] = self.norm_axis(axis, pts[:, axis])
        return pts

    def axis_delta(self, axis: int, a: np.ndarray | float, b: np.ndarray | float) -> np.ndarray:
        """Signed difference b - a, taking the short way round cyclic axes."""
        delta = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
        period = self.period(axis)
        if period is not None:
            delta = np.mod(delta + 0.5 * period, period) - 0.5 * period
        return delta

    @abstractmethod
    def distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        raise NotImplementedError

    @abstractmethod
    def offset(self, a: Sequence[float], b: Sequence[float], dist: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def gap(self, axis: int, suggested: float) -> tuple[float, int]:
        return _nice_gap(suggested)

    def format(self, axis: int, value: float, digits: int) -> str:
        return format_value(value, digits)


class CartesianFrame(Frame):
    def __init__(
        self,
        naxes: int = 2,
        *,
        periods: Sequence[float | None] | None = None,
        bounds: Sequence[tuple[float | None, float | None]] | None = None,
    ) -> None:
        if naxes <= 0:
            raise ValueError("naxes must be > 0")
        self.naxes = naxes
        self._periods = tuple(periods) if periods is not None else (None,) * naxes
        self._bounds = tuple(bounds) if bounds is not None else ((None, None),) * naxes
        if len(self._periods) != naxes or len(self._bounds) != naxes:
            raise ValueError("periods/bounds must have one entry per axis")
        for period in self._periods:
            if period is not None and period <= 0:
                raise ValueError("axis period must be > 0")

    def period(self, axis: int) -> float | None:
        return self._periods[axis]

    def axis_bounds(self, axis: int) -> tuple[float | None, float | None]:
        return self._bounds[axis]

    def distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        va = np.asarray(a, dtype=np.float64)
        vb = np.asarray(b, dtype=np.float64)
        return float(np.linalg.norm(vb - va))

    def offset(self, a: Sequence[float], b: Sequence[float], dist: np.ndarray) -> np.ndarray:
        va = np.asarray(a, dtype=np.float64)
        vb = np.asarray(b, dtype=np.float64)
        d = np.atleast_1d(np.asarray(dist, dtype=np.float64))
        total = float(np.linalg.norm(vb - va))
        if not np.isfinite(total):
            return np.full((d.size, va.size), UNDEFINED)
        if total == 0.0:
            return np.repeat(va.reshape(1, -1), d.size, axis=0)
        unit = (vb - va) / total
        return va.reshape(1, -1) + d.reshape(-1, 1) * unit.reshape(1, -1)


class SphericalFrame(Frame):
    """Longitude/latitude in degrees; longitude wraps at 360, latitude spans [-90, 90]."""

    naxes = 2

    def period(self, axis: int) -> float | None:
        return 360.0 if axis == 0 else None

    def axis_bounds(self, axis: int) -> tuple[float | None, float | None]:
        return (-90.0, 90.0) if axis == 1 else (None, None)

    def norm(self, points: np.ndarray) -> np.ndarray:
        pts = as_points(points, 2).copy()
        lat = np.mod(pts[:, 1] + 90.0, 360.0) - 90.0
        over = lat > 90.0
        # Crossing a pole flips to the opposite meridian.
        lat = np.where(over, 180.0 - lat, lat)
        pts[:, 0] = np.where(over, pts[:, 0] + 180.0, pts[:, 0])
        pts[:, 1] = lat
        pts[:, 0] = self.norm_axis(0, pts[:, 0])
        return pts

    @staticmethod
    def _unit(point: Sequence[float]) -> np.ndarray:
        lon = math.radians(float(point[0]))
        lat = math.radians(float(point[1]))
        return np.asarray(
            [math.cos(lat) * math.cos(lon), math.cos(lat) * math.sin(lon), math.sin(lat)],
            dtype=np.float64,
        )

    def distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
            return UNDEFINED
        ua = self._unit(a)
        ub = self._unit(b)
        return math.degrees(math.atan2(float(np.linalg.norm(np.cross(ua, ub))), float(np.dot(ua, ub))))

    def offset(self, a: Sequence[float], b: Sequence[float], dist: np.ndarray) -> np.ndarray:
        d = np.radians(np.atleast_1d(np.asarray(dist, dtype=np.float64)))
        if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
            return np.full((d.size, 2), UNDEFINED)
        ua = self._unit(a)
        ub = self._unit(b)
        w = ub - float(np.dot(ua, ub)) * ua
        norm_w = float(np.linalg.norm(w))
        if norm_w < 1e-12:
            if float(np.dot(ua, ub)) > 0.0:
                return np.repeat(np.asarray(a, dtype=np.float64).reshape(1, 2), d.size, axis=0)
            # Antipodal: no unique geodesic.
            return np.full((d.size, 2), UNDEFINED)
        w /= norm_w
        vec = np.cos(d).reshape(-1, 1) * ua.reshape(1, 3) + np.sin(d).reshape(-1, 1) * w.reshape(1, 3)
        lon = np.degrees(np.arctan2(vec[:, 1], vec[:, 0]))
        lat = np.degrees(np.arcsin(np.clip(vec[:, 2], -1.0, 1.0)))
        return np.column_stack((np.mod(lon, 360.0), lat))

    def gap(self, axis: int, suggested: float) -> tuple[float, int]:
        size = abs(suggested)
        if size < 1.0:
            return _nice_gap(size)
        limit = 90.0 if axis == 1 else 180.0
        candidates = [g for g in _ANGULAR_GAPS if g <= limit]
        best = min(candidates, key=lambda g: abs(math.log(g / size)))
        return best, _ANGULAR_MINOR[best]
