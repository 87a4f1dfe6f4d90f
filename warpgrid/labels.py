from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable, Iterable, Sequence

import numpy as np

from warpgrid.backend import Box, boxes_overlap
from warpgrid.render import CurveBreaks
from warpgrid.ticks import TickSet
from warpgrid.viewport import Edge, Viewport


LOGGER = logging.getLogger(__name__)

DEFAULT_EDGES: tuple[Edge, Edge] = ("bottom", "left")

TextBox = Callable[[str, float, float, str], Box]


@dataclass(frozen=True)
class EdgeCrossing:
    """A tick curve meeting a viewport edge; (vx, vy) points into the viewport along the curve."""

    axis: int
    value: float
    edge: Edge
    x: float
    y: float
    vx: float
    vy: float
    major: bool = True


@dataclass(frozen=True)
class PlacedLabel:
    axis: int
    value: float
    label: str
    x: float
    y: float
    just: str
    box: Box
    edge: Edge | None = None


def edge_crossings(
    breaks: CurveBreaks,
    viewport: Viewport,
    tol: float,
    *,
    axis: int,
    value: float,
    major: bool = True,
) -> list[EdgeCrossing]:
    out: list[EdgeCrossing] = []
    for brk in breaks.breaks:
        edge = viewport.edge_of(brk.x, brk.y, tol, (brk.vx, brk.vy))
        if edge is None:
            continue
        out.append(
            EdgeCrossing(axis=axis, value=value, edge=edge, x=brk.x, y=brk.y, vx=brk.vx, vy=brk.vy, major=major)
        )
    return out


def label_justification(viewport: Viewport, edge: Edge) -> str:
    """Justification that puts a label on the outside of `edge`."""
    ox, oy = viewport.outward(edge)
    if oy < 0:
        return "TC"
    if oy > 0:
        return "BC"
    return "CR" if ox < 0 else "CL"


def place_edge_labels(
    ticks: TickSet,
    crossings: Sequence[EdgeCrossing],
    viewport: Viewport,
    text_box: TextBox,
    *,
    edge: Edge,
    gap: float,
    placed: list[PlacedLabel],
) -> list[PlacedLabel]:
    """Labels just outside `edge` at the first crossing of each major tick.

    A label whose box overlaps one already in `placed` is dropped.
    """
    if ticks.labels is None:
        return []
    first: dict[float, EdgeCrossing] = {}
    for crossing in crossings:
        if crossing.major and crossing.edge == edge and crossing.value not in first:
            first[crossing.value] = crossing

    ox, oy = viewport.outward(edge)
    just = label_justification(viewport, edge)
    out: list[PlacedLabel] = []
    for value, label in zip(ticks.values.tolist(), ticks.labels, strict=True):
        crossing = first.get(value)
        if crossing is None:
            continue
        x = crossing.x + ox * gap
        y = crossing.y + oy * gap
        box = text_box(label, x, y, just)
        if any(boxes_overlap(box, other.box) for other in placed):
            LOGGER.debug("label %r on axis %d dropped: overlaps a placed label", label, ticks.axis)
            continue
        item = PlacedLabel(axis=ticks.axis, value=value, label=label, x=x, y=y, just=just, box=box, edge=edge)
        placed.append(item)
        out.append(item)
    return out


def place_interior_labels(
    ticks: TickSet,
    curves: Sequence[Sequence[CurveBreaks]],
    text_box: TextBox,
    *,
    gap: float,
    placed: list[PlacedLabel],
) -> list[PlacedLabel]:
    """Labels at the start of the first drawn run of each major tick curve.

    `curves[k]` holds the break records of the span curves of tick `k`.
    """
    if ticks.labels is None:
        return []
    out: list[PlacedLabel] = []
    for value, label, records in zip(ticks.values.tolist(), ticks.labels, curves, strict=True):
        start = next((rec.breaks[0] for rec in records if rec.breaks), None)
        if start is None:
            continue
        x = start.x + start.vx * gap
        y = start.y + start.vy * gap
        box = text_box(label, x, y, "CC")
        if any(boxes_overlap(box, other.box) for other in placed):
            LOGGER.debug("label %r on axis %d dropped: overlaps a placed label", label, ticks.axis)
            continue
        item = PlacedLabel(axis=ticks.axis, value=value, label=label, x=x, y=y, just="CC", box=box)
        placed.append(item)
        out.append(item)
    return out


def tick_marks(crossings: Iterable[EdgeCrossing], major_len: float, minor_len: float) -> list[np.ndarray]:
    """Short inward segments along the curve tangent at each edge crossing."""
    marks: list[np.ndarray] = []
    for crossing in crossings:
        length = major_len if crossing.major else minor_len
        if length <= 0.0:
            continue
        marks.append(
            np.asarray(
                [(crossing.x, crossing.y), (crossing.x + crossing.vx * length, crossing.y + crossing.vy * length)],
                dtype=np.float64,
            )
        )
    return marks
