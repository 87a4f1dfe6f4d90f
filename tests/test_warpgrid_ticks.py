from __future__ import annotations

import unittest

import numpy as np

from warpgrid import InsufficientDataError, TickRequest, Viewport, find_sample_set, plan_ticks
from warpgrid.frames import CartesianFrame, SphericalFrame
from warpgrid.ticks import (
    count_bounds,
    default_gap,
    label_precision,
    major_values,
    plan_axis,
    tick_indices,
    tick_spans,
)
from warpgrid.transforms import FunctionTransform, LinearTransform, PartialTransform, UNDEFINED


UNIT = Viewport(0.0, 1.0, 0.0, 1.0)
TENFOLD = LinearTransform(scale=(10.0, 10.0), offset=(0.0, 0.0))
FRAME = CartesianFrame()
DEFAULT_COUNT_RANGE = count_bounds(6, 14, 1.0)


def _band_removed(lo: float, hi: float) -> PartialTransform:
    return PartialTransform(base=TENFOLD, valid=lambda p: ~((p[:, 1] > lo) & (p[:, 1] < hi)))


class WarpGridTickTests(unittest.TestCase):
    def setUp(self) -> None:
        self.samples = find_sample_set(TENFOLD, FRAME, UNIT)

    def test_linear_grid_gets_unit_gap_and_integer_labels(self) -> None:
        xticks, yticks = plan_ticks(self.samples, FRAME)
        for ticks in (xticks, yticks):
            self.assertEqual(ticks.gap, 1.0)
            self.assertEqual(ticks.values.tolist(), [float(v) for v in range(11)])
            self.assertEqual(ticks.labels, tuple(str(v) for v in range(11)))
            self.assertEqual(ticks.nminor, 5)
            self.assertEqual(ticks.minor.size, 40)
            self.assertTrue(DEFAULT_COUNT_RANGE[0] <= ticks.count <= DEFAULT_COUNT_RANGE[1])

    def test_major_values_are_evenly_spaced(self) -> None:
        xticks, _ = plan_ticks(self.samples, FRAME)
        np.testing.assert_allclose(np.diff(xticks.values), xticks.gap)

    def test_minor_values_lie_between_majors(self) -> None:
        xticks, _ = plan_ticks(self.samples, FRAME)
        self.assertTrue(np.all(xticks.minor > xticks.values[0]))
        self.assertTrue(np.all(xticks.minor < xticks.values[-1]))
        self.assertFalse(np.any(np.isin(np.round(xticks.minor, 9), xticks.values)))

    def test_spans_cover_other_axis_with_one_gap_margin(self) -> None:
        xticks, _ = plan_ticks(self.samples, FRAME)
        self.assertEqual(len(xticks.spans), xticks.count)
        for spans in xticks.spans:
            self.assertEqual(len(spans), 1)
            start, length = spans[0]
            self.assertAlmostEqual(start, -1.0)
            self.assertAlmostEqual(length, 12.0)

    def test_planning_is_repeatable(self) -> None:
        first = plan_ticks(self.samples, FRAME)
        second = plan_ticks(self.samples, FRAME)
        for a, b in zip(first, second, strict=True):
            self.assertEqual(a.gap, b.gap)
            np.testing.assert_array_equal(a.values, b.values)
            self.assertEqual(a.labels, b.labels)

    def test_raising_max_ticks_never_widens_the_gap(self) -> None:
        gaps = [
            plan_axis(self.samples, FRAME, 0, TickRequest(max_ticks=limit)).gap for limit in (6, 8, 10, 14, 20, 30)
        ]
        self.assertEqual(gaps, [2.0, 2.0, 2.0, 1.0, 1.0, 1.0])
        self.assertEqual(gaps, sorted(gaps, reverse=True))

    def test_explicit_gap_is_used_verbatim(self) -> None:
        ticks = plan_axis(self.samples, FRAME, 0, TickRequest(gap=2.5))
        self.assertEqual(ticks.gap, 2.5)
        self.assertEqual(ticks.labels, ("0", "2.5", "5", "7.5", "10"))

    def test_invalid_explicit_gap_is_rejected(self) -> None:
        for gap in (0.0, -1.0, float("inf")):
            with self.assertRaises(ValueError):
                plan_axis(self.samples, FRAME, 0, TickRequest(gap=gap))

    def test_centre_moves_the_tick_origin(self) -> None:
        ticks = plan_axis(self.samples, FRAME, 0, TickRequest(gap=2.0, centre=0.5))
        self.assertEqual(ticks.origin, 0.5)
        self.assertEqual(ticks.values.tolist()[:3], [-1.5, 0.5, 2.5])

    def test_format_and_digits_override_precision_search(self) -> None:
        formatted = plan_axis(self.samples, FRAME, 0, TickRequest(format=".1f"))
        self.assertEqual(formatted.labels[:2], ("0.0", "1.0"))
        self.assertIsNone(formatted.digits)
        fixed = plan_axis(self.samples, FRAME, 0, TickRequest(digits=4))
        self.assertEqual(fixed.digits, 4)
        self.assertEqual(fixed.labels[-1], "10")

    def test_labels_can_be_disabled(self) -> None:
        ticks = plan_axis(self.samples, FRAME, 0, TickRequest(labels=False))
        self.assertIsNone(ticks.labels)

    def test_min_tick_sets_minor_divisions(self) -> None:
        ticks = plan_axis(self.samples, FRAME, 0, TickRequest(min_tick=2))
        self.assertEqual(ticks.nminor, 2)
        self.assertEqual(ticks.minor.size, 10)

    def test_plan_ticks_needs_two_axes(self) -> None:
        with self.assertRaises(ValueError):
            plan_ticks(self.samples, CartesianFrame(3))


class WarpGridTickHelperTests(unittest.TestCase):
    def test_count_bounds_shrink_with_defined_fraction(self) -> None:
        self.assertEqual(count_bounds(6, 14, 1.0), (6, 14))
        self.assertEqual(count_bounds(6, 14, 0.04), (1, 5))

    def test_indices_across_a_wrap_are_not_bridged(self) -> None:
        values = np.concatenate((np.arange(0.0, 11.0), np.arange(350.0, 360.0)))
        self.assertEqual(tick_indices(values, 5.0, 0.0).tolist(), [0, 1, 2, 70, 71, 72])

    def test_short_holes_are_bridged(self) -> None:
        self.assertEqual(tick_indices(np.array([0.0, 4.5]), 1.0, 0.0).tolist(), [0, 1, 2, 3, 4, 5])

    def test_long_holes_are_kept(self) -> None:
        self.assertEqual(tick_indices(np.array([0.0, 1.0, 9.0, 10.0]), 1.0, 0.0).tolist(), [0, 1, 9, 10])

    def test_cyclic_major_values_are_normalized_and_deduplicated(self) -> None:
        values = major_values(SphericalFrame(), 0, np.array([70, 71, 72]), 5.0, 0.0)
        self.assertEqual(values.tolist(), [0.0, 350.0, 355.0])

    def test_label_precision_is_shortest_distinct(self) -> None:
        labels, digits = label_precision(FRAME, 0, np.array([1.0, 1.25, 1.5]))
        self.assertEqual(labels, ("1", "1.25", "1.5"))
        self.assertEqual(digits, 3)

    def test_collapsed_value_range_is_insufficient(self) -> None:
        with self.assertRaises(InsufficientDataError) as ctx:
            default_gap(FRAME, 0, np.full(10, 3.0), 1.0)
        self.assertEqual(ctx.exception.context["axis"], 0)

    def test_undefined_everywhere_is_insufficient(self) -> None:
        nothing = FunctionTransform(
            forward_fn=lambda p: np.full(p.shape, UNDEFINED),
            inverse_fn=lambda p: np.full(p.shape, UNDEFINED),
        )
        with self.assertRaises(InsufficientDataError) as ctx:
            find_sample_set(nothing, FRAME, UNIT)
        self.assertEqual(ctx.exception.operation, "find_sample_set")

    def test_spans_split_across_undefined_band(self) -> None:
        samples = find_sample_set(_band_removed(2.0, 8.0), FRAME, UNIT)
        self.assertAlmostEqual(samples.defined_fraction, 0.4)
        spans = tick_spans(samples, FRAME, 0, 4.0, 2.0, 1.0)
        self.assertEqual(len(spans), 2)
        self.assertAlmostEqual(spans[0][0], -1.0)
        self.assertAlmostEqual(spans[0][1], 1.0 + 30.0 / 19.0 + 1.0)
        self.assertAlmostEqual(spans[1][0], 160.0 / 19.0 - 1.0)
        self.assertAlmostEqual(spans[1][0] + spans[1][1], 11.0)

    def test_partly_defined_viewport_plans_fewer_ticks(self) -> None:
        samples = find_sample_set(_band_removed(2.0, 8.0), FRAME, UNIT)
        _, yticks = plan_ticks(samples, FRAME)
        lo, hi = count_bounds(6, 14, samples.defined_fraction)
        self.assertTrue(lo <= yticks.count <= hi)
        self.assertTrue(all(len(spans) >= 1 for spans in yticks.spans))


if __name__ == "__main__":
    unittest.main()
