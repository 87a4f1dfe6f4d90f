from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math

import numpy as np

from warpgrid.backend import Backend
from warpgrid.errors import BreakCapacityError
from warpgrid.sampler import Evaluator
from warpgrid.transforms import is_defined
from warpgrid.viewport import Viewport


LOGGER = logging.getLogger(__name__)

CRV_NSEG = 14
CRV_NPNT = CRV_NSEG + 1
MAX_DEPTH = 10
COS_LIMIT = 0.8
DEFAULT_TOL = 0.001
MIN_TOL = 1e-7
MAX_TOL = 1.0
MIN_SEGMENT_FRACTION = 0.05
DEFAULT_MAX_BREAKS = 1000
POLY_CAPACITY = 256
MAX_EVALUATIONS = 250_000


@dataclass(frozen=True)
class Break:
    """A point where the drawn curve starts, stops, or is interrupted.

    `(vx, vy)` is a unit vector along the curve pointing back into the drawn
    section; `length` is the drawn length accumulated when it was recorded.
    """

    x: float
    y: float
    vx: float
    vy: float
    length: float


@dataclass(frozen=True)
class CurveBreaks:
    breaks: tuple[Break, ...] = ()
    length: float = 0.0
    out: bool = True

    def __len__(self) -> int:
        return len(self.breaks)

    def positions(self) -> np.ndarray:
        if not self.breaks:
            return np.zeros((0, 2), dtype=np.float64)
        return np.asarray([(b.x, b.y) for b in self.breaks], dtype=np.float64)

    def tangents(self) -> np.ndarray:
        if not self.breaks:
            return np.zeros((0, 2), dtype=np.float64)
        return np.asarray([(b.vx, b.vy) for b in self.breaks], dtype=np.float64)

    def runs(self) -> list[tuple[Break, Break]]:
        """Pairs of (start, end) breaks, one per continuous drawn run."""
        return [(self.breaks[i], self.breaks[i + 1]) for i in range(0, len(self.breaks) - 1, 2)]


def resolve_tolerance(tol: float, viewport: Viewport) -> float:
    """Absolute tolerance in graphics units for a fractional tolerance."""
    frac = min(MAX_TOL, max(MIN_TOL, float(tol)))
    return frac * viewport.min_dimension


def clip_segment(
    p: np.ndarray,
    q: np.ndarray,
    viewport: Viewport,
) -> tuple[tuple[float, float], tuple[float, float]] | None:
    """Part of segment p->q inside the viewport (Liang-Barsky), or None."""
    x0, y0 = float(p[0]), float(p[1])
    dx = float(q[0]) - x0
    dy = float(q[1]) - y0
    t0, t1 = 0.0, 1.0
    for pk, qk in (
        (-dx, x0 - viewport.xlo),
        (dx, viewport.xhi - x0),
        (-dy, y0 - viewport.ylo),
        (dy, viewport.yhi - y0),
    ):
        if pk == 0.0:
            if qk < 0.0:
                return None
            continue
        r = qk / pk
        if pk < 0.0:
            if r > t1:
                return None
            if r > t0:
                t0 = r
        else:
            if r < t0:
                return None
            if r < t1:
                t1 = r

    def _snap(x: float, y: float) -> tuple[float, float]:
        return (
            min(viewport.xhi, max(viewport.xlo, x)),
            min(viewport.yhi, max(viewport.ylo, y)),
        )

    a = _snap(x0 + t0 * dx, y0 + t0 * dy)
    b = _snap(x0 + t1 * dx, y0 + t1 * dy)
    return a, b


@dataclass
class PolylineBuffer:
    """Pending run of graphics points, flushed to the backend when full or at a break."""

    backend: Backend | None
    capacity: int = POLY_CAPACITY
    xs: list[float] = field(default_factory=list)
    ys: list[float] = field(default_factory=list)

    def start(self, point: tuple[float, float]) -> None:
        self.xs = [point[0]]
        self.ys = [point[1]]

    def add(self, point: tuple[float, float]) -> None:
        self.xs.append(point[0])
        self.ys.append(point[1])
        if len(self.xs) >= self.capacity:
            last = (self.xs[-1], self.ys[-1])
            self.flush()
            self.start(last)

    def flush(self) -> None:
        if len(self.xs) >= 2 and self.backend is not None:
            self.backend.polyline(np.asarray(self.xs, dtype=np.float64), np.asarray(self.ys, dtype=np.float64))
        self.xs = []
        self.ys = []


@dataclass
class DrawContext:
    """All mutable state of one top-level curve draw."""

    evaluator: Evaluator
    viewport: Viewport
    tol: float
    backend: Backend | None = None
    max_breaks: int = DEFAULT_MAX_BREAKS
    operation: str = "draw_curve"
    min_len2: float = field(init=False)
    tangent: np.ndarray | None = None
    tangent_end: np.ndarray | None = None
    last_end: tuple[float, float] | None = None
    last_dir: tuple[float, float] | None = None
    length: float = 0.0
    breaks: list[Break] = field(default_factory=list)
    evaluations: int = 0
    budget_exhausted: bool = False
    buffer: PolylineBuffer = field(init=False)

    def __post_init__(self) -> None:
        self.min_len2 = (MIN_SEGMENT_FRACTION * self.tol) ** 2
        self.buffer = PolylineBuffer(backend=self.backend)

    def evaluate(self, t: np.ndarray) -> np.ndarray:
        pts = np.array(self.evaluator(t), dtype=np.float64).reshape(t.size, 2)
        self.evaluations += t.size
        if self.evaluations >= MAX_EVALUATIONS:
            self.budget_exhausted = True
        return pts

    def walk(self, t: np.ndarray, pts: np.ndarray, depth: int) -> None:
        chords = np.diff(pts, axis=0)
        with np.errstate(invalid="ignore"):
            l2 = np.sum(chords * chords, axis=1)
        finite = is_defined(pts)
        ends = finite[:-1] & finite[1:]
        zero = ends & (l2 == 0.0)
        good = ends & (l2 > 0.0)

        ok = good.copy()
        for i in range(CRV_NSEG):
            if not good[i] or l2[i] <= self.min_len2:
                continue
            ref = self._reference(i, chords, ok, good, pts)
            if ref is not None:
                ok[i] = self._smooth(chords[i], float(l2[i]), ref)

        drawable = ok.copy()
        if self._can_split(depth):
            fail = ~ok & ~zero
            for i in range(CRV_NSEG):
                if not ok[i]:
                    continue
                left_fail = i == 0 or bool(fail[i - 1])
                right_fail = i == CRV_NSEG - 1 or bool(fail[i + 1])
                if left_fail and right_fail:
                    drawable[i] = False

        for i in range(CRV_NSEG):
            if zero[i]:
                continue
            if drawable[i]:
                self._draw_segment(pts[i], pts[i + 1], chords[i], float(l2[i]))
            elif self._can_split(depth) and not self._dead(pts[i], pts[i + 1], finite[i], finite[i + 1]):
                tt = np.linspace(t[i], t[i + 1], CRV_NPNT)
                sub = self.evaluate(tt)
                sub[0] = pts[i]
                sub[-1] = pts[i + 1]
                self.walk(tt, sub, depth + 1)
            else:
                self.tangent = None
                self.tangent_end = None

    def finish(self) -> CurveBreaks:
        if self.last_end is not None:
            self._end_run()
        if self.budget_exhausted:
            LOGGER.warning("%s: evaluation budget of %d points exhausted; curve may have gaps", self.operation, MAX_EVALUATIONS)
        if self.length <= 0.0:
            return CurveBreaks()
        return CurveBreaks(breaks=tuple(self.breaks), length=self.length, out=False)

    def _can_split(self, depth: int) -> bool:
        return depth < MAX_DEPTH and not self.budget_exhausted

    def _reference(
        self, i: int, chords: np.ndarray, ok: np.ndarray, good: np.ndarray, pts: np.ndarray
    ) -> np.ndarray | None:
        if i > 0 and ok[i - 1]:
            return chords[i - 1]
        if i == 0 and self.tangent is not None and self.tangent_end is not None:
            if np.array_equal(self.tangent_end, pts[0]):
                return self.tangent
        if i + 1 < CRV_NSEG and good[i + 1]:
            return chords[i + 1]
        return None

    def _smooth(self, chord: np.ndarray, l2: float, ref: np.ndarray) -> bool:
        ref_len = math.hypot(float(ref[0]), float(ref[1]))
        if ref_len == 0.0:
            return True
        cos = float(chord[0] * ref[0] + chord[1] * ref[1]) / (math.sqrt(l2) * ref_len)
        return cos >= COS_LIMIT and l2 * (1.0 - cos * cos) <= 0.5 * self.tol * self.tol

    def _dead(self, p: np.ndarray, q: np.ndarray, p_ok: bool, q_ok: bool) -> bool:
        if not p_ok and not q_ok:
            return True
        if not (p_ok and q_ok):
            return False
        vp = self.viewport
        return (
            (p[0] < vp.xlo and q[0] < vp.xlo)
            or (p[0] > vp.xhi and q[0] > vp.xhi)
            or (p[1] < vp.ylo and q[1] < vp.ylo)
            or (p[1] > vp.yhi and q[1] > vp.yhi)
        )

    def _draw_segment(self, p: np.ndarray, q: np.ndarray, chord: np.ndarray, l2: float) -> None:
        unit = chord / math.sqrt(l2)
        self.tangent = unit
        self.tangent_end = np.array(q, dtype=np.float64)

        clipped = clip_segment(p, q, self.viewport)
        if clipped is None:
            return
        a, b = clipped
        seg_len = math.hypot(b[0] - a[0], b[1] - a[1])
        if seg_len <= 0.0:
            return
        direction = (float(unit[0]), float(unit[1]))

        if self.last_end is None:
            self._start_run(a, direction)
        else:
            jump = math.hypot(a[0] - self.last_end[0], a[1] - self.last_end[1])
            if jump > self.tol:
                self._end_run()
                self._start_run(a, direction)
            elif jump > 0.0:
                self.buffer.add(a)
                self.length += jump

        self.buffer.add(b)
        self.length += seg_len
        self.last_end = b
        self.last_dir = direction

    def _start_run(self, a: tuple[float, float], direction: tuple[float, float]) -> None:
        self._add_break(a[0], a[1], direction[0], direction[1])
        self.buffer.start(a)

    def _end_run(self) -> None:
        assert self.last_end is not None and self.last_dir is not None
        self._add_break(self.last_end[0], self.last_end[1], -self.last_dir[0], -self.last_dir[1])
        self.buffer.flush()

    def _add_break(self, x: float, y: float, vx: float, vy: float) -> None:
        if len(self.breaks) >= self.max_breaks:
            self.buffer.flush()
            raise BreakCapacityError(
                self.operation,
                "number of breaks in curve exceeds the limit",
                breaks=tuple(self.breaks),
                max_breaks=self.max_breaks,
            )
        self.breaks.append(Break(x=float(x), y=float(y), vx=float(vx), vy=float(vy), length=float(self.length)))


def draw_curve(
    evaluator: Evaluator,
    viewport: Viewport,
    *,
    tol: float = DEFAULT_TOL,
    backend: Backend | None = None,
    max_breaks: int = DEFAULT_MAX_BREAKS,
    operation: str = "draw_curve",
) -> CurveBreaks:
    """Draw the curve t -> evaluator(t), t in [0, 1], clipped to `viewport`.

    `tol` is a fraction of the viewport's smaller dimension. Passing
    `backend=None` computes the geometry and break record without drawing.
    """
    if max_breaks < 2:
        raise ValueError("max_breaks must be >= 2")
    if getattr(evaluator, "degenerate", False):
        return CurveBreaks()

    ctx = DrawContext(
        evaluator=evaluator,
        viewport=viewport,
        tol=resolve_tolerance(tol, viewport),
        backend=backend,
        max_breaks=max_breaks,
        operation=operation,
    )
    t = np.linspace(0.0, 1.0, CRV_NPNT)
    pts = ctx.evaluate(t)
    if not np.any(is_defined(pts)):
        return CurveBreaks()
    ctx.walk(t, pts, depth=0)
    return ctx.finish()
