"""HTML content processing and formula extraction."""

import html
import re
import logging
from html.parser import HTMLParser
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

# Editor markup: <span class="ql-custom-formula" data-value="x^2">...rendered KaTeX...</span>
FORMULA_CLASS = 'ql-custom-formula'
FORMULA_ATTR = 'data-value'

# Tags whose end marks a paragraph boundary in the extracted text
BLOCK_TAGS = frozenset({'p', 'div', 'li', 'ul', 'ol', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'blockquote'})

# Editor artefacts that carry no content
ZERO_WIDTH_CHARS = '\ufeff\u200b'


class MarkupExtractionError(ValueError):
    """A formula element carries no usable formula source."""


def _strip_zero_width(text: str) -> str:
    return text.translate({ord(c): None for c in ZERO_WIDTH_CHARS})


def _formula_source(attrs: List[Tuple[str, Optional[str]]], attr_name: str) -> str:
    """Return the formula source carried by a marker element.

    Raises:
        MarkupExtractionError: If the attribute is missing or blank.
    """
    value = dict(attrs).get(attr_name)
    if value is None or not value.strip():
        raise MarkupExtractionError(f"Formula element without '{attr_name}'")
    if '$' in value:
        logger.warning(f"Dropping '$' characters from formula source: {value!r}")
        value = value.replace('$', '')
    return value.strip()


class FormulaExtractor(HTMLParser):
    """Flatten HTML to plain text, replacing formula elements with $...$ tokens."""

    def __init__(self, formula_class: str = FORMULA_CLASS, formula_attr: str = FORMULA_ATTR):
        super().__init__(convert_charrefs=True)
        self.formula_class = formula_class
        self.formula_attr = formula_attr
        self.parts: List[str] = []
        self.formula_count = 0
        # Rendered formula markup is skipped until its element closes
        self._skip_tag: Optional[str] = None
        self._skip_depth = 0
        self._block_depth = 0
        # An empty editor paragraph is <p><br></p>: one line break, not two
        self._after_break = False

    def _line_break(self):
        self.parts.append('\n')
        self._after_break = True

    def _is_formula(self, attrs) -> bool:
        classes = (dict(attrs).get('class') or '').split()
        return self.formula_class in classes

    def handle_starttag(self, tag, attrs):
        if self._skip_tag is not None:
            if tag == self._skip_tag:
                self._skip_depth += 1
            return

        if self._is_formula(attrs):
            try:
                source = _formula_source(attrs, self.formula_attr)
            except MarkupExtractionError as e:
                logger.debug(f"{e}; substituting empty formula token")
                source = ''
            self.parts.append(f'${source}$')
            self.formula_count += 1
            self._after_break = False
            self._skip_tag = tag
            self._skip_depth = 1
        elif tag == 'br':
            self._line_break()
        elif tag in BLOCK_TAGS:
            self._block_depth += 1

    def handle_startendtag(self, tag, attrs):
        if self._skip_tag is None and tag == 'br':
            self._line_break()

    def handle_endtag(self, tag):
        if self._skip_tag is not None:
            if tag == self._skip_tag:
                self._skip_depth -= 1
                if self._skip_depth == 0:
                    self._skip_tag = None
            return

        if tag in BLOCK_TAGS:
            self._block_depth = max(0, self._block_depth - 1)
            if self._after_break:
                self._after_break = False
            else:
                self._line_break()

    def handle_data(self, data):
        if self._skip_tag is not None:
            return
        if not data.strip():
            # Whitespace between block elements is markup formatting
            if self._block_depth == 0:
                return
        else:
            self._after_break = False
        self.parts.append(data)

    @property
    def text(self) -> str:
        return _strip_zero_width(''.join(self.parts))


def has_html_content(text: str) -> bool:
    """Check if text contains HTML tags.

    Args:
        text: Text to check

    Returns:
        True if HTML tags are found
    """
    return bool(re.search(r'<[^>]+>', text))


def extract_formulas(html_content: str,
                     formula_class: str = FORMULA_CLASS,
                     formula_attr: str = FORMULA_ATTR) -> str:
    """Replace formula markup with $<source>$ tokens and drop all other tags.

    Block-level closing tags and <br> become newlines so paragraph structure
    survives for segmentation. A formula element without a source becomes the
    empty token ``$$``; malformed markup never aborts extraction.

    Args:
        html_content: Editor HTML for one slide
        formula_class: CSS class identifying formula elements
        formula_attr: Attribute carrying the LaTeX source

    Returns:
        Plain text with embedded $...$ formula delimiters
    """
    if not html_content:
        return ''
    if not has_html_content(html_content):
        return _strip_zero_width(html.unescape(html_content))

    parser = FormulaExtractor(formula_class, formula_attr)
    parser.feed(html_content)
    parser.close()
    logger.debug(f"Extracted {parser.formula_count} formula(s) from markup")
    return parser.text
