"""Approximate text measurement for the flow layout.

Widths are estimates; there is no shaping or kerning. The default measurer
counts characters, which is what the slide output has always been tuned to.
"""

import logging
from typing import Callable, Dict, Tuple

from .config import LayoutSettings

logger = logging.getLogger(__name__)

POINTS_PER_INCH = 72

# measure(text, font_family, font_size_pt) -> width in layout units
TextMeasurer = Callable[[str, str, float], float]


class HeuristicMeasurer:
    """Character-count width estimate scaled from the base font size."""

    def __init__(self, char_width: float, base_font_size: float):
        self.char_width = char_width
        self.base_font_size = base_font_size

    def __call__(self, text: str, font_family: str, font_size: float) -> float:
        return len(text) * self.char_width * (font_size / self.base_font_size)


class FontMeasurer:
    """Width from a TrueType font's advance widths via Pillow."""

    def __init__(self, font_file: str, base_font_size: float):
        from PIL import ImageFont

        self._image_font = ImageFont
        self.font_file = font_file
        self._fonts: Dict[int, object] = {}
        # Fail early when the font cannot be opened at all
        self._font(max(1, round(base_font_size)))

    def _font(self, size_pt: int):
        if size_pt not in self._fonts:
            self._fonts[size_pt] = self._image_font.truetype(self.font_file, size=size_pt)
        return self._fonts[size_pt]

    def __call__(self, text: str, font_family: str, font_size: float) -> float:
        # At size=N pixels the advance is in 1/N em; treat 1px as 1pt
        length_pt = self._font(max(1, round(font_size))).getlength(text)
        return length_pt / POINTS_PER_INCH


def build_measurer(settings: LayoutSettings) -> TextMeasurer:
    """Create the text measurer selected by ``layout.text_measure``."""
    heuristic = HeuristicMeasurer(settings.char_width, settings.font_size)
    if settings.text_measure != 'font':
        return heuristic

    if not settings.font_file:
        logger.warning("text_measure is 'font' but no font_file configured; using heuristic")
        return heuristic

    try:
        return FontMeasurer(settings.font_file, settings.font_size)
    except OSError as e:
        logger.warning(f"Could not load font {settings.font_file}: {e}; using heuristic")
        return heuristic


def estimate_lines(width: float, line_width: float) -> int:
    """Number of lines a run of the given width wraps to."""
    if line_width <= 0 or width <= line_width:
        return 1
    full, rest = divmod(width, line_width)
    return int(full) + (1 if rest > 1e-9 else 0)


def split_words(text: str) -> Tuple[str, ...]:
    """Words of a text run, split on any whitespace."""
    return tuple(text.split())

