"""Deck generation orchestration.

Pipeline flow:
    1. Parse the deck descriptor into slides and runs
    2. For each slide: title block, formula rendering, flow layout, shapes
    3. Serialize the presentation
"""

import logging
from pathlib import Path
from typing import Optional

from .config import Config
from .content_parser import DeckSpec, load_deck_file
from .document_builder import PptxDocumentBuilder
from .formula_images import FormulaRasterizer, Renderer
from .layout import FlowLayoutEngine
from .slide_builders import SlideAssemblyError, assemble_slide
from .text_metrics import TextMeasurer, build_measurer

logger = logging.getLogger(__name__)


class DocumentSerializationError(Exception):
    """The finished presentation could not be encoded."""


class DeckGenerator:
    """Turns deck descriptors into .pptx documents.

    The settings, text measurer and rasterizer are created once and shared by
    every deck this generator builds; each call to ``generate`` gets its own
    document builder.
    """

    def __init__(self, config: Config,
                 renderer: Optional[Renderer] = None,
                 measure: Optional[TextMeasurer] = None):
        """Initialize the generator with configuration.

        Args:
            config: Configuration object with paths and settings.
            renderer: Formula renderer override (defaults to matplotlib).
            measure: Text measurer override (defaults to the configured one).
        """
        self.config = config
        self.settings = config.layout_settings()
        self.measure = measure or build_measurer(self.settings)
        self.rasterizer = FormulaRasterizer(self.settings, renderer)

    def generate(self, deck: DeckSpec) -> bytes:
        """Build every slide of ``deck`` and return the .pptx bytes.

        Args:
            deck: Parsed deck descriptor.

        Returns:
            Serialized presentation.

        Raises:
            SlideAssemblyError: In strict mode, when any slide fails.
            DocumentSerializationError: If the presentation cannot be saved.
        """
        builder = PptxDocumentBuilder(self.settings)
        engine = FlowLayoutEngine(self.settings, self.measure, deck.template.font_family)

        logger.info(f"Building {len(deck.slides)} slide(s)...")
        for idx, slide_data in enumerate(deck.slides):
            title = slide_data.title
            logger.info(f"=== Slide {idx + 1}: {title[:60]}{'...' if len(title) > 60 else ''} ===")
            try:
                assemble_slide(builder, slide_data, idx, deck.template, engine, self.rasterizer)
            except SlideAssemblyError as e:
                logger.error(f"  Failed to build slide {idx + 1}: {e}")
                if self.config.strict:
                    raise
                continue

        try:
            data = builder.serialize()
        except Exception as e:
            raise DocumentSerializationError(f"Could not serialize presentation: {e}") from e

        logger.info(f"Presentation ready: {builder.slide_count} slide(s), {len(data)} bytes")
        return data

    def generate_file(self, input_path: Optional[Path] = None,
                      output_path: Optional[Path] = None) -> Path:
        """Read a descriptor from disk and write the presentation.

        Args:
            input_path: Descriptor path (defaults to ``paths.input``).
            output_path: Output path (defaults to ``paths.output``).

        Returns:
            Path of the written presentation.
        """
        if input_path is None:
            self.config.validate_paths()
            input_path = self.config.input_path
        output_path = Path(output_path or self.config.output_path)

        deck = load_deck_file(Path(input_path))
        data = self.generate(deck)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Saving presentation to {output_path}...")
        output_path.write_bytes(data)
        logger.info("✓ Presentation saved successfully!")
        return output_path
