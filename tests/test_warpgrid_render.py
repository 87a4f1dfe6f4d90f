from __future__ import annotations

import unittest

import numpy as np

from warpgrid import BreakCapacityError, CurveBreaks, RecordingBackend, Viewport, draw_curve
from warpgrid.frames import CartesianFrame
from warpgrid.render import (
    DEFAULT_TOL,
    MAX_TOL,
    PolylineBuffer,
    clip_segment,
    resolve_tolerance,
)
from warpgrid.sampler import AxisLineSampler, GeodesicSampler, GraphicsLineSampler
from warpgrid.transforms import UNDEFINED, FunctionTransform, LinearTransform


IDENTITY = LinearTransform(scale=(1.0, 1.0), offset=(0.0, 0.0))
UNIT = Viewport(0.0, 1.0, 0.0, 1.0)


def _inverse_only(fn) -> FunctionTransform:
    # Samplers only map physical -> graphics, so the forward direction is never used here.
    return FunctionTransform(forward_fn=lambda p: p, inverse_fn=fn)


def _jump_at_half(p: np.ndarray) -> np.ndarray:
    return np.column_stack((p[:, 0], p[:, 1] + 0.3 * (p[:, 0] >= 0.5)))


def _undefined_beyond(limit: float):
    def fn(p: np.ndarray) -> np.ndarray:
        out = p.copy()
        out[p[:, 0] > limit] = UNDEFINED
        return out

    return fn


def _steps(p: np.ndarray) -> np.ndarray:
    return np.column_stack((p[:, 0], p[:, 1] + 0.3 * (np.floor(p[:, 0] * 20.0) % 2)))


class WarpGridRenderTests(unittest.TestCase):
    def _assert_breaks_inside(self, result: CurveBreaks, viewport: Viewport = UNIT) -> None:
        tol = resolve_tolerance(DEFAULT_TOL, viewport)
        pos = result.positions()
        self.assertTrue(np.all(viewport.contains(pos, margin=tol)))

    def test_tolerance_is_clamped_and_scaled_by_smaller_side(self) -> None:
        viewport = Viewport(0.0, 4.0, 0.0, 2.0)
        self.assertAlmostEqual(resolve_tolerance(0.01, viewport), 0.02)
        self.assertAlmostEqual(resolve_tolerance(50.0, viewport), MAX_TOL * 2.0)

    def test_clip_segment_crossing_viewport_snaps_to_edges(self) -> None:
        clipped = clip_segment(np.array([-1.0, 0.5]), np.array([2.0, 0.5]), UNIT)
        self.assertEqual(clipped, ((0.0, 0.5), (1.0, 0.5)))

    def test_clip_segment_outside_on_one_side_is_none(self) -> None:
        self.assertIsNone(clip_segment(np.array([-1.0, 0.2]), np.array([-0.5, 0.9]), UNIT))
        self.assertIsNone(clip_segment(np.array([0.2, 1.5]), np.array([0.9, 1.1]), UNIT))

    def test_segment_outside_on_same_side_draws_nothing(self) -> None:
        backend = RecordingBackend()
        result = draw_curve(GraphicsLineSampler(IDENTITY, (-0.5, 0.2), (-0.1, 0.8)), UNIT, backend=backend)
        self.assertEqual(len(result), 0)
        self.assertTrue(result.out)
        self.assertEqual(result.length, 0.0)
        self.assertEqual(backend.polylines, [])

    def test_segment_with_one_end_inside_ends_on_the_edge(self) -> None:
        backend = RecordingBackend()
        result = draw_curve(GraphicsLineSampler(IDENTITY, (0.5, 0.5), (1.5, 0.5)), UNIT, backend=backend)
        self.assertFalse(result.out)
        self.assertEqual(len(result), 2)
        start, end = result.breaks
        self.assertAlmostEqual(start.x, 0.5)
        self.assertEqual(end.x, 1.0)
        self.assertAlmostEqual(end.y, 0.5)
        self.assertAlmostEqual(result.length, 0.5)
        self.assertAlmostEqual(start.vx, 1.0)
        self.assertAlmostEqual(start.vy, 0.0)
        self.assertAlmostEqual(end.vx, -1.0)
        self.assertAlmostEqual(end.vy, 0.0)
        self.assertEqual(len(backend.polylines), 1)
        self.assertAlmostEqual(float(backend.polylines[0][-1, 0]), 1.0)

    def test_mapping_discontinuity_records_a_break_pair(self) -> None:
        sampler = AxisLineSampler(_inverse_only(_jump_at_half), (0.0, 0.2), 0, 1.0)
        backend = RecordingBackend()
        result = draw_curve(sampler, UNIT, backend=backend)
        self.assertEqual(len(result), 4)
        self._assert_breaks_inside(result)
        before, after = result.breaks[1], result.breaks[2]
        self.assertAlmostEqual(before.x, 0.5, delta=1e-3)
        self.assertAlmostEqual(before.y, 0.2)
        self.assertAlmostEqual(after.x, 0.5, delta=1e-3)
        self.assertAlmostEqual(after.y, 0.5)
        self.assertEqual(len(backend.polylines), 2)
        # Nothing is drawn across the jump.
        for line in backend.polylines:
            self.assertLess(float(np.ptp(line[:, 1])), 1e-9)

    def test_break_lengths_are_cumulative(self) -> None:
        sampler = AxisLineSampler(_inverse_only(_jump_at_half), (0.0, 0.2), 0, 1.0)
        result = draw_curve(sampler, UNIT)
        lengths = [b.length for b in result.breaks]
        self.assertEqual(lengths[0], 0.0)
        self.assertEqual(lengths, sorted(lengths))
        self.assertAlmostEqual(lengths[-1], result.length)
        self.assertAlmostEqual(result.length, 1.0, delta=2e-3)

    def test_undefined_region_ends_curve_at_its_border(self) -> None:
        sampler = AxisLineSampler(_inverse_only(_undefined_beyond(0.7)), (0.0, 0.5), 0, 1.0)
        result = draw_curve(sampler, UNIT)
        self.assertEqual(len(result), 2)
        self.assertAlmostEqual(result.breaks[-1].x, 0.7, delta=1e-3)

    def test_all_undefined_curve_is_entirely_out(self) -> None:
        sampler = AxisLineSampler(_inverse_only(_undefined_beyond(-1.0)), (0.0, 0.5), 0, 1.0)
        result = draw_curve(sampler, UNIT)
        self.assertEqual(len(result), 0)
        self.assertTrue(result.out)

    def test_zero_length_request_is_degenerate(self) -> None:
        sampler = GeodesicSampler(IDENTITY, CartesianFrame(), (0.3, 0.3), (0.3, 0.3))
        result = draw_curve(sampler, UNIT, backend=RecordingBackend())
        self.assertEqual(len(result), 0)
        self.assertTrue(result.out)

    def test_break_capacity_error_keeps_recorded_breaks(self) -> None:
        sampler = AxisLineSampler(_inverse_only(_steps), (0.0, 0.2), 0, 1.0)
        with self.assertRaises(BreakCapacityError) as ctx:
            draw_curve(sampler, UNIT, max_breaks=10)
        err = ctx.exception
        self.assertEqual(len(err.breaks), 10)
        self.assertEqual(err.operation, "draw_curve")
        self.assertEqual(err.context["max_breaks"], 10)

    def test_many_discontinuities_keep_break_count_even(self) -> None:
        sampler = AxisLineSampler(_inverse_only(_steps), (0.0, 0.2), 0, 1.0)
        result = draw_curve(sampler, UNIT)
        self.assertEqual(len(result) % 2, 0)
        self.assertEqual(len(result), 40)
        self.assertEqual(len(result.runs()), 20)
        self._assert_breaks_inside(result)

    def test_max_breaks_below_two_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            draw_curve(GraphicsLineSampler(IDENTITY, (0.1, 0.1), (0.9, 0.9)), UNIT, max_breaks=1)

    def test_ink_off_returns_same_geometry(self) -> None:
        sampler = AxisLineSampler(_inverse_only(_jump_at_half), (0.0, 0.2), 0, 1.0)
        inked = draw_curve(sampler, UNIT, backend=RecordingBackend())
        dry = draw_curve(sampler, UNIT, backend=None)
        np.testing.assert_allclose(inked.positions(), dry.positions())
        self.assertAlmostEqual(inked.length, dry.length)

    def test_curved_line_stays_within_tolerance_of_true_curve(self) -> None:
        circle = FunctionTransform(
            forward_fn=lambda p: p,
            inverse_fn=lambda p: np.column_stack(
                (0.5 + 0.4 * np.cos(np.radians(p[:, 0])), 0.5 + 0.4 * np.sin(np.radians(p[:, 0])))
            ),
        )
        backend = RecordingBackend()
        result = draw_curve(AxisLineSampler(circle, (0.0, 0.0), 0, 360.0), UNIT, backend=backend)
        self.assertEqual(len(result), 2)
        self.assertAlmostEqual(result.length, 2 * np.pi * 0.4, delta=1e-2)
        pts = np.concatenate(backend.polylines)
        radii = np.hypot(pts[:, 0] - 0.5, pts[:, 1] - 0.5)
        self.assertTrue(np.all(np.abs(radii - 0.4) < 1e-9))
        # Chord midpoints deviate from the circle by no more than the tolerance.
        mids = 0.5 * (pts[1:] + pts[:-1])
        sag = 0.4 - np.hypot(mids[:, 0] - 0.5, mids[:, 1] - 0.5)
        self.assertLess(float(sag.max()), resolve_tolerance(DEFAULT_TOL, UNIT))

    def test_polyline_buffer_flushes_when_full_and_overlaps_runs(self) -> None:
        backend = RecordingBackend()
        buf = PolylineBuffer(backend=backend, capacity=4)
        buf.start((0.0, 0.0))
        for x in (1.0, 2.0, 3.0, 4.0):
            buf.add((x, 0.0))
        buf.flush()
        self.assertEqual(len(backend.polylines), 2)
        self.assertEqual(backend.polylines[0][:, 0].tolist(), [0.0, 1.0, 2.0, 3.0])
        self.assertEqual(backend.polylines[1][:, 0].tolist(), [3.0, 4.0])

    def test_independent_draws_do_not_share_state(self) -> None:
        a = AxisLineSampler(_inverse_only(_jump_at_half), (0.0, 0.2), 0, 1.0)
        b = GraphicsLineSampler(IDENTITY, (0.1, 0.9), (0.9, 0.9))
        first = draw_curve(a, UNIT)
        draw_curve(b, UNIT)
        again = draw_curve(a, UNIT)
        np.testing.assert_allclose(first.positions(), again.positions())


if __name__ == "__main__":
    unittest.main()
