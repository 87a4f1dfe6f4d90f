from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import math
from typing import Sequence

import numpy as np

from warpgrid.errors import InsufficientDataError
from warpgrid.frames import Frame
from warpgrid.samples import GridSampleSet


LOGGER = logging.getLogger(__name__)

DEFAULT_MIN_TICKS = 6
DEFAULT_MAX_TICKS = 14
MIN_TICK_CEILING = 5
GAP_ITERATIONS = 10
QUANTILES = 10
MAX_BRIDGED_INDICES = 3
SPAN_SPLIT_GAPS = 3.0
MAX_LABEL_DIGITS = 17

Span = tuple[float, float]


@dataclass(frozen=True)
class TickRequest:
    """Per-axis tick settings; None means choose automatically."""

    gap: float | None = None
    centre: float | None = None
    min_tick: int | None = None
    min_ticks: int = DEFAULT_MIN_TICKS
    max_ticks: int = DEFAULT_MAX_TICKS
    format: str | None = None
    digits: int | None = None
    labels: bool = True


@dataclass(frozen=True, eq=False)
class TickSet:
    axis: int
    gap: float
    origin: float
    nminor: int
    values: np.ndarray
    minor: np.ndarray
    labels: tuple[str, ...] | None = None
    digits: int | None = None
    spans: tuple[tuple[Span, ...], ...] = ()

    @property
    def count(self) -> int:
        return int(self.values.size)


def count_bounds(min_ticks: int, max_ticks: int, defined_fraction: float) -> tuple[int, int]:
    """Acceptable major tick counts, shrunk when little of the viewport is defined."""
    scale = math.sqrt(max(0.0, min(1.0, defined_fraction)))
    hi = max(MIN_TICK_CEILING, int(round(max_ticks * scale)))
    lo = max(1, int(round(min_ticks * scale)))
    return min(lo, hi), hi


def trial_gap(values: np.ndarray) -> float:
    """Median spacing of evenly spaced quantiles of the sorted values."""
    ordered = np.sort(values)
    quantiles = np.quantile(ordered, np.linspace(0.0, 1.0, QUANTILES))
    gaps = np.diff(quantiles)
    gap = float(np.median(gaps))
    if gap <= 0.0:
        gap = float(ordered[-1] - ordered[0]) / QUANTILES
    return gap


def choose_origin(values: np.ndarray, gap: float, centre: float | None = None) -> float:
    if centre is not None:
        return float(centre)
    return float(round(float(np.min(values)) / gap) * gap)


def tick_indices(values: np.ndarray, gap: float, origin: float) -> np.ndarray:
    """Indices of ticks with a sample strictly within one gap, short holes bridged."""
    u = (np.asarray(values, dtype=np.float64) - origin) / gap
    snapped = np.rint(u)
    u = np.where(np.abs(u - snapped) < 1e-9, snapped, u)
    kept = np.unique(np.concatenate((np.floor(u), np.ceil(u))).astype(np.int64))
    if kept.size < 2:
        return kept

    bridged: list[int] = [int(kept[0])]
    for k in kept[1:].tolist():
        missing = k - bridged[-1] - 1
        if 0 < missing <= MAX_BRIDGED_INDICES:
            bridged.extend(range(bridged[-1] + 1, k))
        bridged.append(k)
    return np.asarray(bridged, dtype=np.int64)


def _canonical(frame: Frame, axis: int, values: np.ndarray, gap: float) -> np.ndarray:
    values = np.asarray(values, dtype=np.float64)
    values = np.where(np.abs(values) < gap * 1e-9, 0.0, values)
    values = frame.norm_axis(axis, values)
    values = np.sort(values[np.isfinite(values)])
    if values.size < 2:
        return values
    keep = np.concatenate(([True], np.diff(values) > gap * 1e-9))
    return values[keep]


def major_values(frame: Frame, axis: int, indices: np.ndarray, gap: float, origin: float) -> np.ndarray:
    return _canonical(frame, axis, origin + indices.astype(np.float64) * gap, gap)


def minor_values(
    frame: Frame, axis: int, indices: np.ndarray, gap: float, origin: float, nminor: int
) -> np.ndarray:
    if nminor < 2 or indices.size < 2:
        return np.zeros(0, dtype=np.float64)
    steps = np.arange(1, nminor, dtype=np.float64) / nminor
    out: list[np.ndarray] = []
    for a, b in zip(indices[:-1].tolist(), indices[1:].tolist(), strict=True):
        if b != a + 1:
            continue
        out.append(origin + (a + steps) * gap)
    if not out:
        return np.zeros(0, dtype=np.float64)
    return _canonical(frame, axis, np.concatenate(out), gap / nminor)


def _count_ticks(frame: Frame, axis: int, values: np.ndarray, gap: float, centre: float | None) -> int:
    origin = choose_origin(values, gap, centre)
    return int(major_values(frame, axis, tick_indices(values, gap, origin), gap, origin).size)


def default_gap(
    frame: Frame,
    axis: int,
    values: np.ndarray,
    defined_fraction: float,
    *,
    min_ticks: int = DEFAULT_MIN_TICKS,
    max_ticks: int = DEFAULT_MAX_TICKS,
    centre: float | None = None,
) -> tuple[float, int]:
    """Search for a nice gap giving an acceptable number of major ticks.

    The trial gap is rescaled by the shortfall or excess in tick count and
    re-rounded by the frame; after a fixed number of attempts the last
    result is kept.
    """
    if values.size == 0 or float(np.max(values) - np.min(values)) <= 0.0:
        raise InsufficientDataError("default_gap", "tick value range collapsed", axis=axis)

    lo, hi = count_bounds(min_ticks, max_ticks, defined_fraction)
    trial = trial_gap(values)
    gap, nminor = frame.gap(axis, trial)
    count = _count_ticks(frame, axis, values, gap, centre)
    for _ in range(GAP_ITERATIONS):
        if lo <= count <= hi:
            break
        bound = lo if count < lo else hi
        trial *= max(count, 1) / bound
        gap, nminor = frame.gap(axis, trial)
        count = _count_ticks(frame, axis, values, gap, centre)
    else:
        if not lo <= count <= hi:
            LOGGER.warning(
                "default_gap: search for axis %d did not converge (gap=%g, ticks=%d, wanted %d-%d)",
                axis,
                gap,
                count,
                lo,
                hi,
            )
    return gap, nminor


def format_labels(frame: Frame, axis: int, values: np.ndarray, digits: int) -> list[str]:
    return [frame.format(axis, float(v), digits) for v in values]


def label_precision(frame: Frame, axis: int, values: np.ndarray) -> tuple[tuple[str, ...], int]:
    """Shortest labels that keep every adjacent pair of tick values distinct."""
    if values.size == 0:
        return (), 1

    def distinct(labels: list[str]) -> bool:
        return all(a != b for a, b in zip(labels[:-1], labels[1:], strict=True))

    digits = 1
    labels = format_labels(frame, axis, values, digits)
    while digits < MAX_LABEL_DIGITS and not distinct(labels):
        digits += 1
        labels = format_labels(frame, axis, values, digits)
    floor = digits

    while digits < MAX_LABEL_DIGITS:
        finer = format_labels(frame, axis, values, digits + 1)
        if finer == labels:
            break
        digits += 1
        labels = finer

    for candidate in range(floor, digits + 1):
        if format_labels(frame, axis, values, candidate) == labels:
            return tuple(labels), candidate
    return tuple(labels), digits


def tick_labels(frame: Frame, axis: int, values: np.ndarray, request: TickRequest) -> tuple[tuple[str, ...], int | None]:
    if request.format is not None:
        return tuple(format(float(v), request.format) for v in values), None
    if request.digits is not None:
        return tuple(format_labels(frame, axis, values, request.digits)), request.digits
    return label_precision(frame, axis, values)


def tick_spans(
    samples: GridSampleSet,
    frame: Frame,
    axis: int,
    value: float,
    gap: float,
    other_gap: float,
) -> tuple[Span, ...]:
    """Stretches of the other axis over which the tick line at `value` has data."""
    other = 1 - axis
    physical = samples.defined_physical()
    near = np.abs(frame.axis_delta(axis, value, physical[:, axis])) < 0.5 * gap
    others = np.sort(physical[near, other])
    if others.size == 0:
        others = np.sort(physical[:, other])
        if others.size == 0:
            return ()
        return (_clamp_span(frame, other, float(others[0]), float(others[-1])),)

    limit = SPAN_SPLIT_GAPS * other_gap
    splits = np.flatnonzero(np.diff(others) > limit) + 1
    runs = [(float(run[0]), float(run[-1])) for run in np.split(others, splits)]
    period = frame.period(other)
    if period is not None and len(runs) > 1 and runs[0][0] + period - runs[-1][1] <= limit:
        runs = [(runs[-1][0] - period, runs[0][1])] + runs[1:-1]
    return tuple(_clamp_span(frame, other, lo - other_gap, hi + other_gap) for lo, hi in runs)


def _clamp_span(frame: Frame, axis: int, start: float, end: float) -> Span:
    lo, hi = frame.axis_bounds(axis)
    if lo is not None:
        start = max(start, lo)
    if hi is not None:
        end = min(end, hi)
    period = frame.period(axis)
    if period is not None and end - start > period:
        end = start + period
    return (start, max(0.0, end - start))


def plan_axis(
    samples: GridSampleSet,
    frame: Frame,
    axis: int,
    request: TickRequest | None = None,
) -> TickSet:
    request = request or TickRequest()
    values = samples.values(axis)
    values = values[np.isfinite(values)]
    if values.size == 0:
        raise InsufficientDataError("plan_axis", "no defined samples", axis=axis)

    if request.gap is not None:
        if not np.isfinite(request.gap) or request.gap <= 0:
            raise ValueError("tick gap must be a positive finite value")
        gap = float(request.gap)
        nminor = frame.gap(axis, gap)[1]
    else:
        gap, nminor = default_gap(
            frame,
            axis,
            values,
            samples.defined_fraction,
            min_ticks=request.min_ticks,
            max_ticks=request.max_ticks,
            centre=request.centre,
        )
    if request.min_tick is not None:
        nminor = max(1, int(request.min_tick))

    origin = choose_origin(values, gap, request.centre)
    indices = tick_indices(values, gap, origin)
    majors = major_values(frame, axis, indices, gap, origin)
    minors = minor_values(frame, axis, indices, gap, origin, nminor)

    labels: tuple[str, ...] | None = None
    digits: int | None = None
    if request.labels:
        labels, digits = tick_labels(frame, axis, majors, request)

    LOGGER.debug("axis %d: gap=%g origin=%g majors=%d minors=%d", axis, gap, origin, majors.size, minors.size)
    return TickSet(
        axis=axis,
        gap=gap,
        origin=origin,
        nminor=nminor,
        values=majors,
        minor=minors,
        labels=labels,
        digits=digits,
    )


def plan_ticks(
    samples: GridSampleSet,
    frame: Frame,
    requests: Sequence[TickRequest | None] = (None, None),
) -> tuple[TickSet, TickSet]:
    """Plan both axes, then the spans each tick line needs on the other axis."""
    if frame.naxes != 2:
        raise ValueError("tick planning needs a 2-axis frame")
    planned = [plan_axis(samples, frame, axis, requests[axis]) for axis in (0, 1)]
    out = []
    for axis, ticks in enumerate(planned):
        other_gap = planned[1 - axis].gap
        spans = tuple(tick_spans(samples, frame, axis, float(v), ticks.gap, other_gap) for v in ticks.values)
        out.append(replace(ticks, spans=spans))
    return out[0], out[1]
