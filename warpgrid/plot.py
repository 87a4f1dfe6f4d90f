from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable, Sequence

import numpy as np

from warpgrid.attributes import PlotAttributes
from warpgrid.backend import DEFAULT_CHAR_HEIGHT, DEFAULT_CHAR_WIDTH, Backend, Box, justify_box
from warpgrid.boundary import BoundaryResult, trace_boundary
from warpgrid.cache import GridCache
from warpgrid.frames import Frame
from warpgrid.labels import (
    EdgeCrossing,
    PlacedLabel,
    edge_crossings,
    place_edge_labels,
    place_interior_labels,
    tick_marks,
)
from warpgrid.render import CurveBreaks, draw_curve, resolve_tolerance
from warpgrid.sampler import (
    AxisLineSampler,
    ClippedSampler,
    Evaluator,
    GeodesicSampler,
    GraphicsLineSampler,
    PolyGeodesicSampler,
    PolylineSampler,
    curve_tangent,
)
from warpgrid.samples import find_sample_set
from warpgrid.ticks import TickRequest, TickSet, plan_ticks
from warpgrid.transforms import Transform, as_points, is_defined
from warpgrid.viewport import ClipVolume, CombineMode, Viewport


LOGGER = logging.getLogger(__name__)

GRAPHICS_FRAME = "graphics"
PHYSICAL_FRAME = "physical"


@dataclass(frozen=True)
class RegisteredFrame:
    """Extra frame reachable from graphics space through `transform` (forward direction)."""

    transform: Transform
    frame: Frame | None = None


@dataclass(frozen=True, eq=False)
class GridResult:
    ticks: tuple[TickSet, TickSet]
    # curves[axis][k] holds one break record per span of major tick k.
    curves: tuple[tuple[tuple[CurveBreaks, ...], ...], ...]
    crossings: tuple[EdgeCrossing, ...]
    labels: tuple[PlacedLabel, ...]
    marks: tuple[np.ndarray, ...]
    boundary: BoundaryResult | None = None


class Plot:
    """Drawing session over one transform, physical frame and viewport.

    Curves are given in physical coordinates, mapped into graphics space and
    drawn on `backend`. With no backend, or with the `ink` attribute off,
    every operation still computes and returns its geometry.
    """

    def __init__(
        self,
        transform: Transform,
        frame: Frame,
        viewport: Viewport,
        backend: Backend | None = None,
        frames: dict[str, RegisteredFrame] | None = None,
    ) -> None:
        if transform.nout != frame.naxes:
            raise ValueError(f"transform gives {transform.nout} physical axes, frame has {frame.naxes}")
        if transform.nin != 2:
            raise ValueError("transform must take 2-D graphics points")
        self.transform = transform
        self.frame = frame
        self.viewport = viewport
        self.backend = backend
        self.attrs = PlotAttributes(frame.naxes)
        self._frames: dict[str, RegisteredFrame] = {}
        self._clip: ClipVolume | None = None
        for name, registered in (frames or {}).items():
            self.add_frame(name, registered.transform, registered.frame)

    def set(self, **values: Any) -> "Plot":
        self.attrs.update(values)
        return self

    # Output.

    @property
    def ink(self) -> Backend | None:
        return self.backend if self.attrs.get("ink") else None

    @property
    def tol(self) -> float:
        return float(self.attrs.get("tol"))

    def _draw(self, evaluator: Evaluator, *, ink: bool = True, operation: str) -> CurveBreaks:
        clip = self._clip_test()
        if clip is not None:
            evaluator = ClippedSampler(evaluator, clip)
        return draw_curve(
            evaluator,
            self.viewport,
            tol=self.tol,
            backend=self.ink if ink else None,
            max_breaks=int(self.attrs.get("max_breaks")),
            operation=operation,
        )

    def _ink_path(self, path: np.ndarray, *, operation: str) -> None:
        """Draw a graphics polyline, cut to the clip volume when one is set."""
        backend = self.ink
        if backend is None or len(path) < 2:
            return
        if self._clip is None:
            backend.polyline(path[:, 0], path[:, 1])
            return
        self._draw(PolylineSampler(path), operation=operation)

    def _point(self, values: Sequence[float]) -> tuple[float, ...]:
        point = tuple(float(v) for v in values)
        if len(point) != self.frame.naxes:
            raise ValueError(f"expected a point with {self.frame.naxes} coordinates, got {len(point)}")
        return point

    def curve(self, start: Sequence[float], end: Sequence[float]) -> CurveBreaks:
        """Draw the geodesic between two physical points."""
        sampler = GeodesicSampler(self.transform, self.frame, self._point(start), self._point(end))
        return self._draw(sampler, operation="curve")

    def grid_line(self, axis: int, start: Sequence[float], length: float) -> CurveBreaks:
        """Draw the line along which only physical axis `axis` varies."""
        if not 0 <= axis < self.frame.naxes:
            raise ValueError(f"axis {axis} out of range")
        sampler = AxisLineSampler(self.transform, self._point(start), axis, float(length))
        return self._draw(sampler, operation="grid_line")

    def poly_curve(self, points: Sequence[Sequence[float]]) -> CurveBreaks:
        sampler = PolyGeodesicSampler(self.transform, self.frame, tuple(self._point(p) for p in points))
        return self._draw(sampler, operation="poly_curve")

    def tangent(self, start: Sequence[float], end: Sequence[float], t: float) -> tuple[float, float] | None:
        """Graphics unit tangent of the geodesic from `start` to `end` at parameter `t`."""
        sampler = GeodesicSampler(self.transform, self.frame, self._point(start), self._point(end))
        return curve_tangent(sampler, t, policy=self.attrs.get("tangent_policy"))

    def _to_visible(self, points: np.ndarray) -> np.ndarray:
        graphics = self.transform.transform(as_points(points, self.frame.naxes), forward=False)
        ok = is_defined(graphics) & self.viewport.contains(graphics)
        clip = self._clip_test()
        if clip is not None:
            ok &= clip(graphics)
        return graphics[ok]

    def mark(self, points: Sequence[Sequence[float]], marker: str = "square") -> np.ndarray:
        """Draw markers at physical points; undefined or clipped points are skipped."""
        visible = self._to_visible(np.asarray(points, dtype=np.float64))
        backend = self.ink
        if backend is not None and visible.size:
            backend.marker(visible[:, 0], visible[:, 1], marker)
        return visible

    def text(self, label: str, point: Sequence[float], just: str = "CC") -> Box | None:
        visible = self._to_visible(np.asarray([self._point(point)], dtype=np.float64))
        if visible.size == 0:
            return None
        x, y = float(visible[0, 0]), float(visible[0, 1])
        box = self._text_box(label, x, y, just)
        backend = self.ink
        if backend is not None:
            backend.text(label, x, y, just)
        return box

    def _text_box(self, label: str, x: float, y: float, just: str) -> Box:
        if self.backend is not None:
            return self.backend.text_box(label, x, y, just)
        scale = float(self.attrs.get("text_size")) * self.viewport.min_dimension
        return justify_box(x, y, DEFAULT_CHAR_WIDTH * scale * len(label), DEFAULT_CHAR_HEIGHT * scale, just)

    # Frames and clipping.

    def add_frame(self, name: str, transform: Transform, frame: Frame | None = None) -> None:
        if name in (GRAPHICS_FRAME, PHYSICAL_FRAME):
            raise ValueError(f"frame name {name!r} is reserved")
        if transform.nin != 2:
            raise ValueError("frame transform must take 2-D graphics points")
        self._frames[name] = RegisteredFrame(transform=transform, frame=frame)

    def remove_frame(self, name: str) -> None:
        if name not in self._frames:
            raise ValueError(f"unknown frame: {name}")
        del self._frames[name]
        if self._clip is not None and self._clip.frame == name:
            LOGGER.info("clip volume cleared: its frame %r was removed", name)
            self._clip = None

    @property
    def frames(self) -> tuple[str, ...]:
        return (GRAPHICS_FRAME, PHYSICAL_FRAME) + tuple(self._frames)

    def _frame_axes(self, name: str) -> int:
        if name == GRAPHICS_FRAME:
            return 2
        if name == PHYSICAL_FRAME:
            return self.transform.nout
        if name in self._frames:
            return self._frames[name].transform.nout
        raise ValueError(f"unknown frame: {name}")

    def set_clip(
        self,
        frame: str,
        lower: Sequence[float],
        upper: Sequence[float],
        combine: CombineMode = "and",
    ) -> ClipVolume:
        naxes = self._frame_axes(frame)
        clip = ClipVolume(
            frame=frame,
            lower=tuple(float(v) for v in lower),
            upper=tuple(float(v) for v in upper),
            combine=combine,
        )
        if len(clip.lower) != naxes:
            raise ValueError(f"frame {frame!r} has {naxes} axes, clip bounds have {len(clip.lower)}")
        self._clip = clip
        return clip

    def clear_clip(self) -> None:
        self._clip = None

    @property
    def clip(self) -> ClipVolume | None:
        return self._clip

    def _clip_test(self) -> Callable[[np.ndarray], np.ndarray] | None:
        clip = self._clip
        if clip is None:
            return None
        if clip.frame == GRAPHICS_FRAME:
            return clip.inside
        transform = self.transform if clip.frame == PHYSICAL_FRAME else self._frames[clip.frame].transform

        def inside(graphics: np.ndarray) -> np.ndarray:
            coords = transform.transform(graphics, forward=True)
            return clip.inside(coords)

        return inside

    # Grid.

    def boundary(self, cache: GridCache | None = None) -> BoundaryResult:
        if cache is not None and cache.boundary is not None:
            return cache.boundary
        result = trace_boundary(self.transform, self.viewport, self.tol)
        if cache is not None:
            cache.boundary = result
        return result

    def border(self, cache: GridCache | None = None) -> BoundaryResult:
        """Draw the outline of the part of the viewport where the transform is defined."""
        result = self.boundary(cache)
        if result.fully_undefined:
            return result
        for curve in result.curves:
            self._ink_path(curve, operation="border")
        vp = self.viewport
        corners = [(vp.xlo, vp.ylo), (vp.xhi, vp.ylo), (vp.xhi, vp.yhi), (vp.xlo, vp.yhi)]
        for p0, p1 in zip(corners, corners[1:] + corners[:1], strict=True):
            self._draw(GraphicsLineSampler(self.transform, p0, p1), operation="border")
        return result

    def tick_request(self, axis: int) -> TickRequest:
        get = self.attrs.get
        return TickRequest(
            gap=get("gap", axis),
            centre=get("centre", axis),
            min_tick=get("min_tick", axis),
            min_ticks=get("min_ticks", axis),
            max_ticks=get("max_ticks", axis),
            format=get("format", axis),
            digits=get("digits", axis),
            labels=get("num_lab", axis),
        )

    def ticks(self, cache: GridCache | None = None) -> tuple[TickSet, TickSet]:
        if cache is not None and cache.ticks is not None:
            return cache.ticks
        samples = cache.samples if cache is not None else None
        if samples is None:
            samples = find_sample_set(self.transform, self.frame, self.viewport)
            if cache is not None:
                cache.samples = samples
        ticks = plan_ticks(samples, self.frame, (self.tick_request(0), self.tick_request(1)))
        if cache is not None:
            cache.ticks = ticks
        return ticks

    def _tick_curve(self, axis: int, value: float, span: tuple[float, float], *, ink: bool) -> CurveBreaks:
        other = 1 - axis
        start = [0.0, 0.0]
        start[axis] = value
        start[other] = span[0]
        sampler = AxisLineSampler(self.transform, tuple(start), other, span[1])
        return self._draw(sampler, ink=ink, operation="grid")

    def _nearest_spans(self, ticks: TickSet, value: float) -> tuple[tuple[float, float], ...]:
        if ticks.count == 0:
            return ()
        deltas = np.abs(self.frame.axis_delta(ticks.axis, ticks.values, value))
        return ticks.spans[int(np.argmin(deltas))]

    def grid(self) -> GridResult:
        """Plan ticks, draw tick curves, border, labels and tick marks.

        Tick curves carry ink only when the `grid` attribute is set; they are
        always computed so that their edge crossings place labels and marks.
        """
        if self.frame.naxes != 2:
            raise ValueError("grid drawing needs a 2-axis frame")
        cache = GridCache()
        try:
            ticks = self.ticks(cache)
            tol_abs = resolve_tolerance(self.tol, self.viewport)
            draw_lines = bool(self.attrs.get("grid"))

            curves: list[tuple[tuple[CurveBreaks, ...], ...]] = []
            crossings: list[EdgeCrossing] = []
            for ts in ticks:
                per_tick: list[tuple[CurveBreaks, ...]] = []
                for value, spans in zip(ts.values.tolist(), ts.spans, strict=True):
                    records = tuple(self._tick_curve(ts.axis, value, span, ink=draw_lines) for span in spans)
                    for rec in records:
                        crossings.extend(edge_crossings(rec, self.viewport, tol_abs, axis=ts.axis, value=value))
                    per_tick.append(records)
                curves.append(tuple(per_tick))
                for value in ts.minor.tolist():
                    for span in self._nearest_spans(ts, value):
                        rec = self._tick_curve(ts.axis, value, span, ink=False)
                        crossings.extend(
                            edge_crossings(rec, self.viewport, tol_abs, axis=ts.axis, value=value, major=False)
                        )

            boundary = self.border(cache) if self.attrs.get("border") else None
            labels = self._place_labels(ticks, curves, crossings)
            marks = self._draw_tick_marks(crossings)
            LOGGER.debug(
                "grid: majors=%s crossings=%d labels=%d marks=%d",
                [ts.count for ts in ticks],
                len(crossings),
                len(labels),
                len(marks),
            )
            return GridResult(
                ticks=ticks,
                curves=tuple(curves),
                crossings=tuple(crossings),
                labels=tuple(labels),
                marks=tuple(marks),
                boundary=boundary,
            )
        finally:
            cache.invalidate()

    def _place_labels(
        self,
        ticks: tuple[TickSet, TickSet],
        curves: list[tuple[tuple[CurveBreaks, ...], ...]],
        crossings: list[EdgeCrossing],
    ) -> list[PlacedLabel]:
        placed: list[PlacedLabel] = []
        interior = self.attrs.get("labelling") == "interior"
        for ts in ticks:
            if ts.labels is None:
                continue
            gap = float(self.attrs.get("num_lab_gap", ts.axis)) * self.viewport.min_dimension
            edge = self.attrs.get("edge", ts.axis)
            on_edge = [c for c in crossings if c.axis == ts.axis and c.major and c.edge == edge]
            if not interior and on_edge:
                place_edge_labels(ts, on_edge, self.viewport, self._text_box, edge=edge, gap=gap, placed=placed)
            else:
                if not interior:
                    LOGGER.warning("axis %d has no crossings of the %s edge; labelling interior", ts.axis, edge)
                place_interior_labels(ts, curves[ts.axis], self._text_box, gap=gap, placed=placed)

        backend = self.ink
        if backend is not None:
            for item in placed:
                backend.text(item.label, item.x, item.y, item.just)
        return placed

    def _draw_tick_marks(self, crossings: list[EdgeCrossing]) -> list[np.ndarray]:
        size = self.viewport.min_dimension
        marks: list[np.ndarray] = []
        for axis in (0, 1):
            marks.extend(
                tick_marks(
                    (c for c in crossings if c.axis == axis),
                    float(self.attrs.get("maj_tick_len", axis)) * size,
                    float(self.attrs.get("min_tick_len", axis)) * size,
                )
            )
        for mark in marks:
            self._ink_path(mark, operation="tick_marks")
        return marks
