"""
Pytest configuration and shared fixtures.
"""

import io
from pathlib import Path
from typing import List, Tuple

import pytest
from PIL import Image

from latex_pptx.config import Config, LayoutSettings
from latex_pptx.formula_images import RenderError, RenderResult

PROJECT_ROOT = Path(__file__).parent.parent

CHAR_WIDTH = 0.1


def make_png(width: int, height: int) -> bytes:
    """Create a real transparent PNG of the given size."""
    buffer = io.BytesIO()
    Image.new('RGBA', (width, height), (0, 0, 0, 0)).save(buffer, format='PNG')
    return buffer.getvalue()


class FakeRenderer:
    """Renderer double: 20px per source character, 40px tall.

    Sources containing ``\\bad`` fail like a mathtext parse error.
    """

    def __init__(self):
        self.calls: List[Tuple[str, float, int]] = []

    def __call__(self, latex: str, font_size: float, dpi: int) -> RenderResult:
        self.calls.append((latex, font_size, dpi))
        if '\\bad' in latex:
            raise RenderError(f"Unknown symbol in {latex}")
        width, height = 20 * len(latex) + 10, 40
        return RenderResult(png=make_png(width, height), width_px=width, height_px=height)


def fixed_measure(text: str, font_family: str, font_size: float) -> float:
    """Every character is 0.1 layout units wide regardless of font."""
    return len(text) * CHAR_WIDTH


@pytest.fixture
def settings() -> LayoutSettings:
    """Default layout settings."""
    return LayoutSettings()


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def measure():
    return fixed_measure


@pytest.fixture
def config() -> Config:
    """Configuration with built-in defaults only."""
    return Config.from_dict({})


@pytest.fixture
def sample_deck() -> dict:
    """A small deck descriptor in the editor's payload format."""
    return {
        'slides': [
            {
                'title': 'Math Equation Demo',
                'sub_title': 'Mass-energy equivalence',
                'content': (
                    '<p>Einstein said: <span class="ql-custom-formula" data-value="E = mc^2">'
                    '<span contenteditable="false"><span class="katex">E = mc^2</span></span>'
                    '</span> is the famous formula.</p>'
                ),
            },
            {
                'title': 'Plain Slide',
                'sub_title': '',
                'content': '<p>No formulas here.</p>',
            },
        ],
        'template': {'fontFamily': 'Calibri'},
    }
