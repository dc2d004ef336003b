"""Slide content parsing: descriptor loading, segmentation and run tokenizing.

A slide's ``content`` goes through three steps:

    1. extract_formulas   - editor HTML to plain text with $...$ tokens
    2. split_series       - plain text to ordered series (paragraphs)
    3. tokenize_series    - one series to text / formula runs

Expected descriptor format (JSON or YAML):
    slides:
      - title: "Quadratic Formula"
        sub_title: "Solving quadratic equations"
        content: "<p>Solve <span class=\"ql-custom-formula\" data-value=\"x^2=4\"></span></p>"
    template:
      backgroundImage: "assets/background.jpg"
      fontFamily: "Poppins"
"""

import re
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .html_formulas import extract_formulas

logger = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = 'Calibri'

# Non-nested, non-greedy: the first closing '$' ends the formula
FORMULA_PATTERN = re.compile(r'\$([^$]*)\$')

# LaTeX commands that begin with "\n"; any other "\n" is a line break escape
_LATEX_N_COMMANDS = (
    'abla', 'atural', 'cong', 'e', 'earrow', 'eg', 'eq', 'eqq', 'ewline',
    'exists', 'geq', 'gtr', 'i', 'leftarrow', 'leftrightarrow', 'leq', 'less',
    'mid', 'olimits', 'ormalsize', 'ot', 'otin', 'parallel', 'prec', 'sim',
    'subseteq', 'succ', 'supseteq', 'u', 'vdash', 'warrow', 'Leftarrow',
    'Leftrightarrow', 'Rightarrow', 'rightarrow',
)
_PLAIN_ESCAPE = re.compile(r'\\n(?!(?:%s)(?![A-Za-z]))' % '|'.join(_LATEX_N_COMMANDS))
# A formula token within one line, or a command-like escape outside of one
_COMMAND_ESCAPE = re.compile(r'(\$[^$\n]*\$)|\\n')
_PARAGRAPH_JOIN = re.compile(r'</p\s*>\s*<p(?:\s[^>]*)?>', re.IGNORECASE)
_PARAGRAPH_OPEN = re.compile(r'<p(?:\s[^>]*)?>', re.IGNORECASE)
_PARAGRAPH_CLOSE = re.compile(r'</p\s*>', re.IGNORECASE)
_BREAK_BEFORE_CLOSE = re.compile(r'<br\s*/?>\s*(?=</p\s*>)', re.IGNORECASE)
_LINE_BREAK_TAG = re.compile(r'<br\s*/?>', re.IGNORECASE)


class DeckFormatError(ValueError):
    """The deck descriptor does not have the expected shape."""


class RunKind(str, Enum):
    TEXT = 'text'
    FORMULA = 'formula'
    BREAK = 'break'


@dataclass
class Run:
    """An atomic content unit within a series.

    Attributes:
        kind: text, formula or break.
        value: Text content (text runs).
        latex: Formula source without delimiters (formula runs).
        series_index: Paragraph the run belongs to; non-decreasing across a slide.
    """
    kind: RunKind
    value: str = ''
    latex: str = ''
    series_index: int = 0


@dataclass
class TemplateSpec:
    """Deck-wide presentation settings."""
    background_image: str | None = None
    font_family: str = DEFAULT_FONT_FAMILY


@dataclass
class SlideData:
    """Data structure representing one input slide.

    Attributes:
        title: Slide title.
        subtitle: Optional subtitle; empty strings count as absent.
        content: Raw editor HTML.
        runs: Tokenized runs, filled by parse_content.
    """
    title: str
    subtitle: str | None = None
    content: str = ''
    runs: list[Run] = field(default_factory=list)

    @property
    def has_subtitle(self) -> bool:
        return bool(self.subtitle and self.subtitle.strip())


@dataclass
class DeckSpec:
    """A parsed deck descriptor."""
    slides: list[SlideData] = field(default_factory=list)
    template: TemplateSpec = field(default_factory=TemplateSpec)


def normalize_newlines(text: str) -> str:
    """Fold every newline encoding into a literal line feed.

    Handles CRLF, the two-character ``\\n`` escape and paragraph / line-break
    tags. An escape that could not begin a LaTeX command is always a line
    break, even next to a stray '$'. One that could (``\\neq``, ``\\nu``) is
    left alone only inside a formula token on the same line.
    """
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    text = _PLAIN_ESCAPE.sub('\n', text)
    text = _COMMAND_ESCAPE.sub(lambda m: m.group(1) or '\n', text)
    text = _PARAGRAPH_JOIN.sub('\n', text)
    text = _BREAK_BEFORE_CLOSE.sub('', text)
    text = _PARAGRAPH_CLOSE.sub('\n', text)
    text = _PARAGRAPH_OPEN.sub('', text)
    return _LINE_BREAK_TAG.sub('\n', text)


def split_series(text: str) -> list[str]:
    """Split normalized text into ordered series.

    Every blank line is kept as an empty series, so each empty paragraph
    becomes its own line break. Blank lines at the end are dropped.

    Args:
        text: Plain text, possibly still carrying newline escapes or <p> tags.

    Returns:
        List of series strings; '' marks an empty line.
    """
    series = [segment if segment.strip() else ''
              for segment in normalize_newlines(text).split('\n')]

    while series and series[-1] == '':
        series.pop()
    return series


def tokenize_series(text: str, series_index: int = 0) -> list[Run]:
    """Split one series into text and formula runs.

    Text spans are trimmed and dropped when empty. An unterminated '$' stays
    literal text. Empty formula tokens ($$) carry no source and are dropped.

    Args:
        text: Series text with $...$ delimiters.
        series_index: Index stamped on every emitted run.

    Returns:
        Runs in source order.
    """
    runs: list[Run] = []
    last_index = 0

    for match in FORMULA_PATTERN.finditer(text):
        preceding = text[last_index:match.start()].strip()
        if preceding:
            runs.append(Run(RunKind.TEXT, value=preceding, series_index=series_index))

        latex = match.group(1).strip()
        if latex:
            runs.append(Run(RunKind.FORMULA, latex=latex, series_index=series_index))
        else:
            logger.debug(f"  Dropped empty formula token in series {series_index}")

        last_index = match.end()

    trailing = text[last_index:].strip()
    if trailing:
        runs.append(Run(RunKind.TEXT, value=trailing, series_index=series_index))

    return runs


def parse_content(content: str) -> list[Run]:
    """Turn one slide's editor HTML into its ordered run sequence.

    Args:
        content: Raw slide content.

    Returns:
        Runs for every series, in order; paragraph gaps become break runs.
    """
    runs: list[Run] = []
    for index, series in enumerate(split_series(extract_formulas(content))):
        if not series.strip():
            runs.append(Run(RunKind.BREAK, series_index=index))
        else:
            runs.extend(tokenize_series(series, index))
    return runs


def _parse_template(raw: Any) -> TemplateSpec:
    if raw is None:
        return TemplateSpec()
    if not isinstance(raw, dict):
        raise DeckFormatError("'template' must be an object")

    background = raw.get('backgroundImage') or raw.get('image_path') or raw.get('background_image')
    font = (
        raw.get('fontFamily') or raw.get('font_family') or raw.get('theme')
        or DEFAULT_FONT_FAMILY
    )
    return TemplateSpec(background_image=background, font_family=str(font))


def parse_deck(data: Any) -> DeckSpec:
    """Validate a deck descriptor and parse every slide's content.

    Args:
        data: Decoded JSON/YAML document.

    Returns:
        DeckSpec with runs filled for each slide.

    Raises:
        DeckFormatError: If the descriptor is malformed.
    """
    if not isinstance(data, dict):
        raise DeckFormatError("Deck descriptor must be an object")

    raw_slides = data.get('slides')
    if not isinstance(raw_slides, list):
        raise DeckFormatError("Deck descriptor needs a 'slides' list")

    slides: list[SlideData] = []
    for idx, raw in enumerate(raw_slides):
        if not isinstance(raw, dict):
            raise DeckFormatError(f"Slide {idx + 1} must be an object")

        content = raw.get('content')
        if not isinstance(content, str):
            logger.warning(f"Slide {idx + 1}: content is not a string, using empty content")
            content = ''

        subtitle = raw.get('sub_title', raw.get('subtitle'))
        slide = SlideData(
            title=str(raw.get('title') or ''),
            subtitle=str(subtitle) if subtitle else None,
            content=content,
        )
        slide.runs = parse_content(content)
        logger.debug(f"Slide {idx + 1}: {len(slide.runs)} runs")
        slides.append(slide)

    return DeckSpec(slides=slides, template=_parse_template(data.get('template')))


def load_deck_file(path: Path) -> DeckSpec:
    """Read a JSON or YAML deck descriptor from disk.

    Args:
        path: Descriptor path (.json, .yaml or .yml).

    Returns:
        Parsed DeckSpec.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Deck descriptor not found: {path}")

    text = path.read_text(encoding='utf-8')
    try:
        if path.suffix.lower() == '.json':
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DeckFormatError(f"Could not parse {path}: {e}") from e

    logger.info(f"Loaded deck descriptor: {path}")
    return parse_deck(data)
