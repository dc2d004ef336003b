"""python-pptx document writer for absolutely positioned slide content."""

import io
import math
import logging
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.text import MSO_AUTO_SIZE
from pptx.util import Inches, Pt

from .config import LayoutSettings

if TYPE_CHECKING:
    from pptx.slide import Slide
    from pptx.shapes.autoshape import Shape
    from pptx.shapes.picture import Picture

logger = logging.getLogger(__name__)

PPTX_MIME_TYPE = 'application/vnd.openxmlformats-officedocument.presentationml.presentation'

BLANK_LAYOUT_INDEX = 6
TEXT_COLOR = RGBColor(0, 0, 0)
PLACEHOLDER_COLOR = RGBColor(192, 0, 0)


class BoxRejectedError(ValueError):
    """A box cannot be placed on the slide canvas."""


class PptxDocumentBuilder:
    """Collects slides and shapes and serializes them to OOXML bytes."""

    def __init__(self, settings: LayoutSettings):
        self.settings = settings
        self.prs = Presentation()
        self.prs.slide_width = Inches(settings.slide_width)
        self.prs.slide_height = Inches(settings.slide_height)

    @property
    def slide_count(self) -> int:
        return len(self.prs.slides)

    def add_slide(self) -> 'Slide':
        """Append a slide using the blank layout."""
        return self.prs.slides.add_slide(self.prs.slide_layouts[BLANK_LAYOUT_INDEX])

    def _check_box(self, x: float, y: float, width: float, height: float) -> None:
        values = (x, y, width, height)
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
            raise BoxRejectedError(f"Non-finite box {values}")
        if width <= 0 or height <= 0:
            raise BoxRejectedError(f"Box has no area: {width:.2f}x{height:.2f}")
        if not (0 <= x < self.settings.slide_width) or not (0 <= y < self.settings.slide_height):
            raise BoxRejectedError(
                f"Box origin ({x:.2f}, {y:.2f}) is outside the "
                f"{self.settings.slide_width}x{self.settings.slide_height} canvas"
            )

    def add_text(self, slide: 'Slide', text: str,
                 x: float, y: float, width: float, height: float,
                 font_name: str, font_size: float,
                 bold: bool = False, italic: bool = False,
                 wrap: bool = False,
                 color: RGBColor = TEXT_COLOR) -> 'Shape':
        """Add a text box with a single formatted run.

        Args:
            slide: Target slide.
            text: Text content.
            x, y, width, height: Box in inches.
            font_name: Font family.
            font_size: Size in points.
            bold, italic: Run formatting.
            wrap: Let PowerPoint wrap the text inside the box width.
            color: Text color.

        Returns:
            The created shape.

        Raises:
            BoxRejectedError: If the box is invalid or off the canvas.
        """
        self._check_box(x, y, width, height)

        shape = slide.shapes.add_textbox(Inches(x), Inches(y), Inches(width), Inches(height))
        text_frame = shape.text_frame
        text_frame.word_wrap = wrap
        text_frame.auto_size = MSO_AUTO_SIZE.NONE
        text_frame.margin_left = text_frame.margin_right = 0
        text_frame.margin_top = text_frame.margin_bottom = 0

        run = text_frame.paragraphs[0].add_run()
        run.text = text
        run.font.name = font_name
        run.font.size = Pt(font_size)
        run.font.bold = bold
        run.font.italic = italic
        run.font.color.rgb = color
        return shape

    def add_image(self, slide: 'Slide', png: bytes,
                  x: float, y: float, width: float, height: float) -> 'Picture':
        """Add a PNG image at an exact size.

        Raises:
            BoxRejectedError: If the box is invalid or off the canvas.
        """
        self._check_box(x, y, width, height)
        return slide.shapes.add_picture(
            io.BytesIO(png), Inches(x), Inches(y), width=Inches(width), height=Inches(height)
        )

    def add_placeholder(self, slide: 'Slide', text: str,
                        x: float, y: float, width: float, height: float,
                        font_name: str, font_size: float) -> 'Shape':
        """Add an outlined stand-in for content that could not be rendered."""
        shape = self.add_text(slide, text, x, y, width, height, font_name, font_size,
                              italic=True, color=PLACEHOLDER_COLOR)
        shape.line.color.rgb = PLACEHOLDER_COLOR
        shape.line.width = Pt(1)
        return shape

    def set_background(self, slide: 'Slide', image_path: Optional[str]) -> Optional['Picture']:
        """Add a full-bleed background image behind everything else on the slide.

        Remote images are not fetched; only local files are used.

        Args:
            slide: Target slide.
            image_path: Local path to the image file.

        Returns:
            The picture shape, or None when no background was added.
        """
        if not image_path:
            return None
        if image_path.startswith(('http://', 'https://')):
            logger.warning(f"Skipping remote background image: {image_path}")
            return None

        path = Path(image_path)
        if not path.exists():
            logger.warning(f"Background image not found: {path}")
            return None

        picture = slide.shapes.add_picture(
            str(path),
            Inches(0),
            Inches(0),
            width=Inches(self.settings.slide_width),
            height=Inches(self.settings.slide_height),
        )
        # spTree starts with nvGrpSpPr and grpSpPr; the first shape slot is index 2
        sp = picture._element
        sp.getparent().insert(2, sp)
        logger.debug(f"  Added background image: {path}")
        return picture

    def serialize(self) -> bytes:
        """Encode the presentation as .pptx bytes."""
        buffer = io.BytesIO()
        self.prs.save(buffer)
        return buffer.getvalue()
