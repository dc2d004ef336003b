"""Inline flow layout for mixed text and formula images.

The engine walks a slide's runs once, series by series, and places every
piece at an absolute position on the canvas. There is no reflow: once a
fragment is placed it stays put.

Per series the cursor is either at a line start or mid-line:

    * a word or image that does not fit in the rest of the line wraps first,
      unless the cursor is already at a line start (oversized items overflow);
    * a break run closes the current line and adds a paragraph gap;
    * after the last run the open line is closed and the inter-series
      spacing is added.

Series containing formula images are laid out word by word so text can sit
tightly around the images; text-only series are placed as whole runs and
left to the text box's own word wrap.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from .config import LayoutSettings
from .content_parser import RunKind
from .formula_images import MeasuredRun
from .text_metrics import TextMeasurer, build_measurer, estimate_lines, split_words

logger = logging.getLogger(__name__)


class BoxKind(str, Enum):
    TEXT = 'text'
    IMAGE = 'image'
    PLACEHOLDER = 'placeholder'


@dataclass
class PositionedBox:
    """A placed piece of content, in absolute layout units.

    Attributes:
        kind: text, image or placeholder (a formula that failed to render).
        content: Text for text boxes, PNG bytes for images, source for placeholders.
        x, y, width, height: Absolute rectangle on the slide.
        series_index: Series the content came from.
        run_index: Position of the source run in the slide's run sequence.
        multiline: Text box that relies on word wrap inside its width.
    """
    kind: BoxKind
    content: Union[str, bytes]
    x: float
    y: float
    width: float
    height: float
    series_index: int = 0
    run_index: int = 0
    multiline: bool = False


class LineState(str, Enum):
    AT_LINE_START = 'at_line_start'
    MID_LINE = 'mid_line'


@dataclass
class LayoutCursor:
    """Mutable flow position for one slide."""
    x: float
    y: float
    line_height: float = 0.0
    state: LineState = LineState.AT_LINE_START

    def new_line(self, left: float) -> None:
        self.y += self.line_height
        self.x = left
        self.line_height = 0.0
        self.state = LineState.AT_LINE_START

    def place(self, width: float, height: float, spacing: float) -> None:
        self.x += width + spacing
        self.line_height = max(self.line_height, height)
        self.state = LineState.MID_LINE


@dataclass
class _Fragment:
    """Words of one text run that ended up on the same line."""
    x: float
    y: float
    words: List[str] = field(default_factory=list)
    width: float = 0.0


class FlowLayoutEngine:
    """Place measured runs on a fixed-width canvas."""

    def __init__(self, settings: LayoutSettings,
                 measure: Optional[TextMeasurer] = None,
                 font_family: str = 'Calibri'):
        self.settings = settings
        self.measure = measure or build_measurer(settings)
        self.font_family = font_family

    def _text_width(self, text: str) -> float:
        return self.measure(text, self.font_family, self.settings.font_size)

    def _fits(self, cursor: LayoutCursor, width: float) -> bool:
        return cursor.x + width <= self.settings.right_edge + 1e-9

    def layout(self, runs: List[MeasuredRun], top: float) -> List[PositionedBox]:
        """Lay out a slide's runs starting at vertical offset ``top``.

        Args:
            runs: Measured runs in source order.
            top: y of the first content line.

        Returns:
            Positioned boxes in placement order.
        """
        s = self.settings
        cursor = LayoutCursor(x=s.left_margin, y=top)
        boxes: List[PositionedBox] = []

        for series in self._group(runs):
            mixed = any(run.is_inline_box for _, run in series)
            logger.debug(
                f"  Series {series[0][1].series_index}: {len(series)} run(s), "
                f"{'mixed' if mixed else 'text-only'} at y={cursor.y:.2f}"
            )
            for position, (run_index, run) in enumerate(series):
                following = series[position + 1][1] if position + 1 < len(series) else None
                if run.kind == RunKind.BREAK:
                    self._place_break(cursor)
                elif run.is_inline_box:
                    boxes.append(self._place_image(cursor, run, run_index, following))
                elif mixed:
                    boxes.extend(self._place_words(cursor, run, run_index))
                else:
                    boxes.append(self._place_run(cursor, run, run_index))

            cursor.new_line(s.left_margin)
            cursor.y += s.series_spacing

        return boxes

    @staticmethod
    def _group(runs: List[MeasuredRun]) -> List[List[Tuple[int, MeasuredRun]]]:
        groups: List[List[Tuple[int, MeasuredRun]]] = []
        current = None
        for run_index, run in enumerate(runs):
            if current is not None and run.series_index < current:
                raise ValueError(
                    f"Run {run_index} belongs to series {run.series_index} after series {current}"
                )
            if run.series_index != current:
                groups.append([])
                current = run.series_index
            groups[-1].append((run_index, run))
        return groups

    def _place_break(self, cursor: LayoutCursor) -> None:
        cursor.new_line(self.settings.left_margin)
        cursor.y += self.settings.break_spacing

    def _spacing_after_image(self, following: Optional[MeasuredRun]) -> float:
        s = self.settings
        if following is None or following.kind != RunKind.TEXT:
            return s.image_spacing
        first = following.value[:1]
        if first and first in s.closing_punctuation:
            return s.punctuation_spacing
        return s.image_spacing

    def _place_image(self, cursor: LayoutCursor, run: MeasuredRun, run_index: int,
                     following: Optional[MeasuredRun]) -> PositionedBox:
        s = self.settings
        width, height = run.display_width, run.display_height

        if cursor.state == LineState.MID_LINE and not self._fits(cursor, width):
            cursor.new_line(s.left_margin)

        if run.failed:
            box = PositionedBox(BoxKind.PLACEHOLDER, run.latex, cursor.x, cursor.y,
                                width, height, run.series_index, run_index)
            bottom = height
        else:
            # Nudge so the formula sits on the text baseline, not its top edge
            box = PositionedBox(BoxKind.IMAGE, run.image, cursor.x, cursor.y + s.baseline_offset,
                                width, height, run.series_index, run_index)
            bottom = max(height + s.baseline_offset, 0.0)

        cursor.place(width, bottom, self._spacing_after_image(following))
        return box

    def _place_words(self, cursor: LayoutCursor, run: MeasuredRun,
                     run_index: int) -> List[PositionedBox]:
        s = self.settings
        boxes: List[PositionedBox] = []
        fragment: Optional[_Fragment] = None

        def flush():
            if fragment is not None and fragment.words:
                boxes.append(PositionedBox(
                    BoxKind.TEXT, ' '.join(fragment.words), fragment.x, fragment.y,
                    fragment.width, s.text_line_height, run.series_index, run_index,
                ))

        for word in split_words(run.value):
            width = self._text_width(word)
            if cursor.state == LineState.MID_LINE and not self._fits(cursor, width):
                flush()
                fragment = None
                cursor.new_line(s.left_margin)

            if fragment is None:
                fragment = _Fragment(x=cursor.x, y=cursor.y)
            fragment.words.append(word)
            fragment.width = cursor.x + width - fragment.x
            cursor.place(width, s.text_line_height, s.inter_word_spacing)

        flush()
        return boxes

    def _place_run(self, cursor: LayoutCursor, run: MeasuredRun,
                   run_index: int) -> PositionedBox:
        s = self.settings
        width = self._text_width(run.value)

        if cursor.state == LineState.MID_LINE and not self._fits(cursor, width):
            cursor.new_line(s.left_margin)

        available = s.right_edge - cursor.x
        if width <= available + 1e-9:
            box = PositionedBox(BoxKind.TEXT, run.value, cursor.x, cursor.y, width,
                                s.text_line_height, run.series_index, run_index)
            cursor.place(width, s.text_line_height, s.inter_word_spacing)
            return box

        # Longer than the line: one wrapping box spanning the rest of the column
        lines = estimate_lines(width, available)
        height = lines * s.text_line_height
        box = PositionedBox(BoxKind.TEXT, run.value, cursor.x, cursor.y, available,
                            height, run.series_index, run_index, multiline=True)
        cursor.place(available, height, 0.0)
        cursor.new_line(s.left_margin)
        return box
