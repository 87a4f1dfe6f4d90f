from .canvas import RGBA, draw_pixel, fill_rect, new_canvas
from .draw_lines import draw_polyline
from .draw_markers import MARKER_KINDS, draw_markers
from .draw_text import draw_text, text_size

__all__ = [
    "MARKER_KINDS",
    "RGBA",
    "draw_markers",
    "draw_pixel",
    "draw_polyline",
    "draw_text",
    "fill_rect",
    "new_canvas",
    "text_size",
]
