"""Slide assembly: title block, formula rendering, flow layout, shapes.

One slide is built in three passes:

    1. title and optional subtitle at fixed offsets
    2. every formula run rendered and sized (failures become placeholders)
    3. the measured runs laid out and each positioned box forwarded to the
       document builder
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .config import LayoutSettings
from .content_parser import Run, RunKind, SlideData, TemplateSpec
from .document_builder import BoxRejectedError, PptxDocumentBuilder
from .formula_images import FormulaRasterizer, FormulaRenderError, MeasuredRun
from .layout import BoxKind, FlowLayoutEngine, PositionedBox
from .text_metrics import TextMeasurer

if TYPE_CHECKING:
    from pptx.slide import Slide

logger = logging.getLogger(__name__)

TITLE_HEIGHT = 0.5
SUBTITLE_HEIGHT = 0.4


class SlideAssemblyError(Exception):
    """A slide could not be completed.

    Attributes:
        slide_index: Zero-based index of the slide in the deck.
        run_index: Run whose box was rejected, or None for the title block.
    """

    def __init__(self, slide_index: int, run_index: int | None, reason: str):
        self.slide_index = slide_index
        self.run_index = run_index
        self.reason = reason
        where = f"run {run_index}" if run_index is not None else "title block"
        super().__init__(f"Slide {slide_index + 1}, {where}: {reason}")


def placeholder_label(latex: str) -> str:
    return f"[{latex}]"


def measure_runs(
    runs: list[Run],
    rasterizer: FormulaRasterizer,
    measure: TextMeasurer,
    settings: LayoutSettings,
    font_family: str,
) -> list[MeasuredRun]:
    """Render formula runs and wrap every run for layout.

    A formula that fails to render is replaced by a placeholder sized to its
    bracketed source, capped at the maximum inline image width.

    Args:
        runs: Slide runs in source order.
        rasterizer: Formula rasterizer.
        measure: Text measurer used to size placeholders.
        settings: Layout settings.
        font_family: Deck font family.

    Returns:
        Measured runs, one per input run, in the same order.
    """
    measured: list[MeasuredRun] = []
    for run in runs:
        if run.kind != RunKind.FORMULA:
            measured.append(MeasuredRun.from_run(run))
            continue

        try:
            measured.append(rasterizer.rasterize(run))
        except FormulaRenderError as e:
            logger.warning(f"  Skipping formula, showing placeholder: {e}")
            width = measure(placeholder_label(run.latex), font_family, settings.font_size)
            width = min(max(width, settings.min_image_width), settings.max_image_width)
            measured.append(MeasuredRun.placeholder(run, width, settings.text_line_height))
    return measured


def add_title_block(builder: PptxDocumentBuilder, slide: "Slide", data: SlideData,
                    settings: LayoutSettings, font_family: str) -> None:
    """Add the title and, when present, the subtitle."""
    width = settings.slide_width - 2 * settings.title_x
    builder.add_text(slide, data.title, settings.title_x, settings.title_y,
                     width, TITLE_HEIGHT, font_family, settings.title_font_size,
                     bold=True, wrap=True)
    if data.has_subtitle:
        builder.add_text(slide, data.subtitle.strip(), settings.title_x, settings.subtitle_y,
                         width, SUBTITLE_HEIGHT, font_family, settings.subtitle_font_size,
                         italic=True, wrap=True)


def add_positioned_box(builder: PptxDocumentBuilder, slide: "Slide", box: PositionedBox,
                       settings: LayoutSettings, font_family: str) -> None:
    """Forward one positioned box to the document builder."""
    if box.kind == BoxKind.IMAGE:
        builder.add_image(slide, box.content, box.x, box.y, box.width, box.height)
    elif box.kind == BoxKind.PLACEHOLDER:
        builder.add_placeholder(slide, placeholder_label(box.content), box.x, box.y,
                                box.width, box.height, font_family, settings.font_size)
    else:
        builder.add_text(slide, box.content, box.x, box.y, box.width, box.height,
                         font_family, settings.font_size, wrap=box.multiline)


def assemble_slide(
    builder: PptxDocumentBuilder,
    data: SlideData,
    slide_index: int,
    template: TemplateSpec,
    engine: FlowLayoutEngine,
    rasterizer: FormulaRasterizer,
) -> "Slide":
    """Build one output slide from parsed slide data.

    Args:
        builder: Document builder receiving the shapes.
        data: Parsed slide with runs.
        slide_index: Zero-based position in the deck.
        template: Deck template (background, font).
        engine: Flow layout engine configured for the deck font.
        rasterizer: Formula rasterizer.

    Returns:
        The created slide.

    Raises:
        SlideAssemblyError: If the builder rejects the title block or a box.
    """
    settings = engine.settings
    font_family = template.font_family

    slide = builder.add_slide()
    builder.set_background(slide, template.background_image)

    try:
        add_title_block(builder, slide, data, settings, font_family)
    except BoxRejectedError as e:
        raise SlideAssemblyError(slide_index, None, str(e)) from e

    measured = measure_runs(data.runs, rasterizer, engine.measure, settings, font_family)
    boxes = engine.layout(measured, top=settings.content_top_for(data.has_subtitle))

    for box in boxes:
        logger.debug(
            f"  {box.kind.value} box (run {box.run_index}) at "
            f"({box.x:.2f}, {box.y:.2f}) {box.width:.2f}x{box.height:.2f}"
        )
        try:
            add_positioned_box(builder, slide, box, settings, font_family)
        except BoxRejectedError as e:
            raise SlideAssemblyError(slide_index, box.run_index, str(e)) from e

    logger.info(f"  Placed {len(boxes)} content box(es)")
    return slide
