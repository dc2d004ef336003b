"""LaTeX-aware PowerPoint slide deck generator package."""

from .config import Config, LayoutSettings
from .html_formulas import (
    MarkupExtractionError,
    extract_formulas,
)
from .content_parser import (
    DeckFormatError,
    DeckSpec,
    Run,
    RunKind,
    SlideData,
    TemplateSpec,
    load_deck_file,
    parse_content,
    parse_deck,
    split_series,
    tokenize_series,
)
from .formula_images import (
    FormulaRasterizer,
    FormulaRenderError,
    MeasuredRun,
    RenderError,
    RenderResult,
    init_renderer,
    render_with_matplotlib,
)
from .layout import (
    BoxKind,
    FlowLayoutEngine,
    PositionedBox,
)
from .document_builder import (
    BoxRejectedError,
    PptxDocumentBuilder,
)
from .slide_builders import (
    SlideAssemblyError,
    assemble_slide,
)
from .generator import (
    DeckGenerator,
    DocumentSerializationError,
)

__all__ = [
    # Configuration
    "Config",
    "LayoutSettings",
    # Formula extraction
    "MarkupExtractionError",
    "extract_formulas",
    # Content parsing
    "DeckFormatError",
    "DeckSpec",
    "Run",
    "RunKind",
    "SlideData",
    "TemplateSpec",
    "load_deck_file",
    "parse_content",
    "parse_deck",
    "split_series",
    "tokenize_series",
    # Formula rendering
    "FormulaRasterizer",
    "FormulaRenderError",
    "MeasuredRun",
    "RenderError",
    "RenderResult",
    "init_renderer",
    "render_with_matplotlib",
    # Layout
    "BoxKind",
    "FlowLayoutEngine",
    "PositionedBox",
    # Document building
    "BoxRejectedError",
    "PptxDocumentBuilder",
    "SlideAssemblyError",
    "assemble_slide",
    "DeckGenerator",
    "DocumentSerializationError",
]
