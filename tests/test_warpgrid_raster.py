from __future__ import annotations

import unittest

import numpy as np

from warpgrid import BackendError, RasterBackend, RecordingBackend, Viewport
from warpgrid.backend import boxes_overlap, justify_box
from warpgrid.raster import draw_markers, draw_polyline, draw_text, new_canvas, text_size


RED = (255, 0, 0, 255)
BLACK = (0, 0, 0, 255)
UNIT = Viewport(0.0, 1.0, 0.0, 1.0)


def _is_red(canvas: np.ndarray, x: int, y: int) -> bool:
    return tuple(int(v) for v in canvas[y, x]) == RED


class WarpGridRasterTests(unittest.TestCase):
    def test_polyline_draws_connected_pixels(self) -> None:
        canvas = new_canvas(5, 5, BLACK)
        draw_polyline(canvas, np.array([0.0, 4.0]), np.array([2.0, 2.0]), RED)
        self.assertTrue(all(_is_red(canvas, x, 2) for x in range(5)))
        self.assertFalse(_is_red(canvas, 0, 0))

    def test_undefined_vertex_splits_polyline(self) -> None:
        canvas = new_canvas(5, 1, BLACK)
        draw_polyline(canvas, np.array([0.0, 1.0, np.nan, 3.0, 4.0]), np.zeros(5), RED)
        self.assertEqual([_is_red(canvas, x, 0) for x in range(5)], [True, True, False, True, True])

    def test_plus_marker(self) -> None:
        canvas = new_canvas(5, 5, BLACK)
        draw_markers(canvas, np.array([2.0]), np.array([2.0]), RED, size=3, kind="plus")
        for x, y in ((2, 1), (1, 2), (2, 2), (3, 2), (2, 3)):
            self.assertTrue(_is_red(canvas, x, y))
        self.assertFalse(_is_red(canvas, 1, 1))

    def test_unknown_marker_kind(self) -> None:
        with self.assertRaises(ValueError):
            draw_markers(new_canvas(3, 3), np.array([1.0]), np.array([1.0]), RED, kind="star")

    def test_text_is_blended_and_clipped(self) -> None:
        canvas = new_canvas(40, 20, BLACK)
        draw_text(canvas, 2, 2, "42", RED)
        self.assertTrue(np.any(canvas[:, :, 0] > 0))
        # Partly off the canvas is fine.
        draw_text(canvas, -5, -5, "42", RED)
        w, h = text_size("42")
        self.assertGreater(w, 0)
        self.assertGreater(h, 0)


class WarpGridBackendTests(unittest.TestCase):
    def test_justify_box(self) -> None:
        self.assertEqual(justify_box(0.0, 0.0, 2.0, 1.0, "BL"), (0.0, 0.0, 2.0, 1.0))
        self.assertEqual(justify_box(0.0, 0.0, 2.0, 1.0, "TR"), (-2.0, -1.0, 0.0, 0.0))
        self.assertEqual(justify_box(0.0, 0.0, 2.0, 1.0, "CC"), (-1.0, -0.5, 1.0, 0.5))
        with self.assertRaises(ValueError):
            justify_box(0.0, 0.0, 2.0, 1.0, "XX")

    def test_touching_boxes_do_not_overlap(self) -> None:
        self.assertFalse(boxes_overlap((0.0, 0.0, 1.0, 1.0), (1.0, 0.0, 2.0, 1.0)))
        self.assertTrue(boxes_overlap((0.0, 0.0, 1.0, 1.0), (0.5, 0.5, 2.0, 2.0)))

    def test_recording_backend_text_box(self) -> None:
        backend = RecordingBackend()
        x0, y0, x1, y1 = backend.text_box("abc", 0.0, 0.0, "BL")
        self.assertEqual((x0, y0), (0.0, 0.0))
        self.assertAlmostEqual(x1, 0.036)
        self.assertAlmostEqual(y1, 0.02)
        backend.text("abc", 0.0, 0.0, "BL")
        self.assertEqual(backend.texts[0].box, (x0, y0, x1, y1))
        backend.clear()
        self.assertEqual(backend.texts, [])

    def test_raster_backend_maps_corners(self) -> None:
        backend = RasterBackend(11, 11, UNIT)
        px, py = backend.to_pixels(np.array([0.0, 1.0]), np.array([0.0, 1.0]))
        self.assertEqual(px.tolist(), [0.0, 10.0])
        self.assertEqual(py.tolist(), [10.0, 0.0])
        flipped = RasterBackend(11, 11, Viewport.from_box(0.0, 1.0, 1.0, 0.0))
        _, py = flipped.to_pixels(np.array([0.0]), np.array([0.0]))
        self.assertEqual(py.tolist(), [0.0])

    def test_raster_backend_polyline_and_text(self) -> None:
        backend = RasterBackend(21, 21, UNIT, background=BLACK, color=RED)
        backend.polyline(np.array([0.0, 1.0]), np.array([0.5, 0.5]))
        rgba = backend.to_rgba()
        self.assertTrue(_is_red(rgba, 0, 10))
        self.assertTrue(_is_red(rgba, 20, 10))
        before = backend.to_rgba()
        backend.text("7", 0.5, 0.25)
        self.assertFalse(np.array_equal(before, backend.to_rgba()))
        box = backend.text_box("7", 0.5, 0.25)
        self.assertLess(box[0], 0.5)
        self.assertGreater(box[2], 0.5)

    def test_raster_backend_wraps_marker_errors(self) -> None:
        backend = RasterBackend(5, 5, UNIT)
        with self.assertRaises(BackendError) as ctx:
            backend.marker(np.array([0.5]), np.array([0.5]), "star")
        self.assertEqual(ctx.exception.operation, "marker")
        self.assertEqual(ctx.exception.context["kind"], "star")

    def test_raster_backend_rejects_empty_canvas(self) -> None:
        with self.assertRaises(ValueError):
            RasterBackend(0, 10, UNIT)


if __name__ == "__main__":
    unittest.main()
