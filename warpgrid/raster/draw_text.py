from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from warpgrid.raster.canvas import RGBA, blend_coverage


LOGGER = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = "DejaVu Sans"
DEFAULT_FONT_SIZE_PX = 12.0
FALLBACK_FAMILIES = ("dejavusans", "liberationsans", "helvetica", "arial", "menlo", "courier")
FONT_DIRS = (
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path.home() / ".fonts",
    Path("/Library/Fonts"),
    Path("/System/Library/Fonts"),
)

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


def draw_text(
    dst: np.ndarray,
    x: int,
    y: int,
    text: str,
    color: RGBA,
    *,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_size_px: float = DEFAULT_FONT_SIZE_PX,
) -> None:
    """Blend `text` into `dst` with its ink box's top-left corner at pixel (x, y)."""
    if text:
        blend_coverage(dst, x, y, _glyph_coverage(text, font_family, font_size_px), color)


def text_size(
    text: str,
    *,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_size_px: float = DEFAULT_FONT_SIZE_PX,
) -> tuple[int, int]:
    """Pixel width and height of the ink box `draw_text` fills for `text`."""
    font = load_font(font_family, font_size_px)
    if not text:
        ascent, descent = font.getmetrics()
        return 0, max(1, int(ascent + descent))
    left, top, right, bottom = font.getbbox(text)
    return max(0, int(right - left)), max(1, int(bottom - top))


@lru_cache(maxsize=256)
def _glyph_coverage(text: str, font_family: str, font_size_px: float) -> np.ndarray:
    font = load_font(font_family, font_size_px)
    left, top, right, bottom = font.getbbox(text)
    image = Image.new("L", (max(1, int(right - left)), max(1, int(bottom - top))), 0)
    ImageDraw.Draw(image).text((-left, -top), text, fill=255, font=font)
    return np.asarray(image, dtype=np.float32) / 255.0


@lru_cache(maxsize=32)
def load_font(font_family: str, font_size_px: float) -> Font:
    size = max(1, int(round(font_size_px)))
    path = find_font_file(font_family)
    if path is not None:
        try:
            return ImageFont.truetype(str(path), size=size)
        except OSError as exc:
            LOGGER.warning("could not load font %s (%s); using Pillow default", path, exc)
    return ImageFont.load_default(size=size)


@lru_cache(maxsize=32)
def find_font_file(font_family: str) -> Path | None:
    """First installed TrueType/OpenType file whose name matches the family or a fallback."""
    files = sorted(
        path
        for base in FONT_DIRS
        if base.is_dir()
        for path in base.rglob("*")
        if path.suffix.lower() in (".ttf", ".otf")
    )
    keys = {path: path.stem.lower().replace(" ", "").replace("-", "") for path in files}
    wanted = font_family.lower().replace(" ", "") or DEFAULT_FONT_FAMILY.lower().replace(" ", "")
    for family in (wanted,) + FALLBACK_FAMILIES:
        for path in files:
            if keys[path].startswith(family):
                return path
    return None
