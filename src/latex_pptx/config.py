"""Configuration management for the LaTeX slide-deck generator."""

import copy
import yaml
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional


# Built-in defaults; a YAML file only needs to carry the keys it changes.
# All distances are layout units (inches).
DEFAULT_CONFIG: Dict[str, Any] = {
    'paths': {
        'output': 'output/GeneratedPresentation.pptx',
        'sample': 'configs/sample_deck.yaml',
    },
    'settings': {
        'strict': False,
        'output_filename': 'GeneratedPresentation.pptx',
        'logging': {
            'level': 'INFO',
        },
    },
    'server': {
        'host': '0.0.0.0',
        'port': 3000,
    },
    'layout': {
        'slide_width': 10.0,
        'slide_height': 5.63,
        'left_margin': 1.0,
        'right_margin': 1.0,
        # Title block
        'title_x': 0.5,
        'title_y': 0.5,
        'title_font_size': 24,
        'subtitle_y': 1.0,
        'subtitle_font_size': 18,
        'content_top': 1.5,
        'content_top_with_subtitle': 1.8,
        # Text flow
        'font_size': 16,
        'text_line_height': 0.4,
        'inter_word_spacing': 0.08,
        'char_width': 0.1,
        'text_measure': 'heuristic',
        'font_file': None,
        # Inline formula images
        'image_spacing': 0.1,
        'punctuation_spacing': 0.02,
        'closing_punctuation': '.)',
        'baseline_offset': -0.05,
        'min_image_width': 0.3,
        'max_inline_fraction': 0.8,
        # Vertical rhythm between series
        'series_spacing': 0.15,
        'break_spacing': 0.3,
    },
    'renderer': {
        'base_scale': 3.0,
        'construct_weight': 1.0,
        'length_divisor': 50.0,
        'length_cap': 2.0,
        'min_scale': 4.0,
        'points_per_scale': 4.0,
        'pixel_density': 96,
        'oversample': 2,
        'timeout': 10.0,
        'fontset': 'cm',
    },
}


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """Load a YAML file and return its contents."""
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def merge_dicts(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries, overlay taking precedence."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


@dataclass(frozen=True)
class LayoutSettings:
    """Read-only layout and rendering constants shared by every request.

    Distances are in layout units (inches); font sizes in points.
    """
    slide_width: float = 10.0
    slide_height: float = 5.63
    left_margin: float = 1.0
    right_margin: float = 1.0
    title_x: float = 0.5
    title_y: float = 0.5
    title_font_size: int = 24
    subtitle_y: float = 1.0
    subtitle_font_size: int = 18
    content_top: float = 1.5
    content_top_with_subtitle: float = 1.8
    font_size: int = 16
    text_line_height: float = 0.4
    inter_word_spacing: float = 0.08
    char_width: float = 0.1
    text_measure: str = 'heuristic'
    font_file: Optional[str] = None
    image_spacing: float = 0.1
    punctuation_spacing: float = 0.02
    closing_punctuation: str = '.)'
    baseline_offset: float = -0.05
    min_image_width: float = 0.3
    max_inline_fraction: float = 0.8
    series_spacing: float = 0.15
    break_spacing: float = 0.3
    # Renderer scaling
    base_scale: float = 3.0
    construct_weight: float = 1.0
    length_divisor: float = 50.0
    length_cap: float = 2.0
    min_scale: float = 4.0
    points_per_scale: float = 4.0
    pixel_density: int = 96
    oversample: int = 2
    render_timeout: float = 10.0
    fontset: str = 'cm'

    @property
    def usable_width(self) -> float:
        """Width of the content column between the margins."""
        return self.slide_width - self.left_margin - self.right_margin

    @property
    def right_edge(self) -> float:
        """Absolute x coordinate where the content column ends."""
        return self.slide_width - self.right_margin

    @property
    def max_image_width(self) -> float:
        """Widest an inline formula image may be displayed."""
        return self.usable_width * self.max_inline_fraction

    def content_top_for(self, has_subtitle: bool) -> float:
        """First content y offset; a subtitle pushes content down."""
        return self.content_top_with_subtitle if has_subtitle else self.content_top


class Config:
    """Configuration manager that merges a YAML file over built-in defaults.

    Values are read with dot notation (``config.get('layout.left_margin')``).
    Relative paths under ``paths`` resolve against ``paths.project_root``,
    itself relative to the config file's directory, or the working directory
    when unset.
    """

    def __init__(self, config_path: str = 'configs/config.yaml'):
        """Load ``config_path`` and merge it over the defaults.

        Args:
            config_path: YAML configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        self.config_path = Path(config_path)
        self._apply(load_yaml_file(self.config_path), self.config_path.parent)

    @classmethod
    def from_dict(cls, main_config: Optional[Dict[str, Any]] = None,
                  config_dir: Optional[Path] = None) -> "Config":
        """Build a configuration without a file (the HTTP app factory and tests use this).

        Args:
            main_config: Overrides in the same shape as the YAML file.
            config_dir: Base for a relative ``paths.project_root``.
        """
        config = cls.__new__(cls)
        config_dir = Path(config_dir) if config_dir else Path.cwd()
        config.config_path = config_dir / 'config.yaml'
        config._apply(main_config or {}, config_dir)
        return config

    def _apply(self, overrides: Dict[str, Any], config_dir: Path) -> None:
        root = (overrides.get('paths') or {}).get('project_root')
        self.project_root = (config_dir / root).resolve() if root else Path.cwd()
        self._config = merge_dicts(copy.deepcopy(DEFAULT_CONFIG), overrides)
        self._setup_logging()
        logging.debug(f"Loaded config from: {self.config_path}")

    def _setup_logging(self):
        level_name = str(self.get('settings.logging.level', 'INFO')).upper()
        logging.basicConfig(
            level=getattr(logging, level_name, logging.INFO),
            format='%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def get(self, key_path: str, default: Any = None) -> Any:
        """Look up a value by dot-separated path, e.g. 'renderer.timeout'."""
        node = self._config
        for part in key_path.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key_path: str, value: Any) -> None:
        """Set a value by dot-separated path (CLI overrides)."""
        *parents, leaf = key_path.split('.')
        node = self._config
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value

    def get_path(self, key: str) -> Path:
        """Resolve ``paths.<key>`` against the project root.

        Raises:
            ValueError: If the key is not configured.
        """
        value = self.get(f'paths.{key}')
        if not value:
            raise ValueError(f"Path '{key}' not found in configuration")
        path = Path(value)
        return path.resolve() if path.is_absolute() else self.project_root / path

    def validate_paths(self):
        """Check that the input descriptor is configured and exists."""
        try:
            path = self.get_path('input')
        except ValueError:
            raise FileNotFoundError("Deck descriptor not configured (paths.input)")
        if not path.exists():
            raise FileNotFoundError(f"Deck descriptor not found: {path}")

    def layout_settings(self) -> LayoutSettings:
        """Build the immutable layout settings from the merged configuration."""
        values = dict(self.get('layout', {}))
        renderer = dict(self.get('renderer', {}))
        # renderer.timeout is the only key whose field name differs
        if 'timeout' in renderer:
            renderer['render_timeout'] = renderer.pop('timeout')
        values.update(renderer)

        known = LayoutSettings.__dataclass_fields__
        unknown = sorted(k for k in values if k not in known)
        if unknown:
            logging.warning(f"Ignoring unknown layout settings: {', '.join(unknown)}")
        return LayoutSettings(**{k: v for k, v in values.items() if k in known})

    @property
    def strict(self) -> bool:
        """Whether a failed slide aborts the whole deck."""
        return bool(self.get('settings.strict', False))

    @property
    def output_filename(self) -> str:
        return self.get('settings.output_filename', 'GeneratedPresentation.pptx')

    @property
    def input_path(self) -> Path:
        return self.get_path('input')

    @property
    def sample_deck_path(self) -> Path:
        """Bundled sample deck served by GET /ppt."""
        return self.get_path('sample')

    @property
    def output_path(self) -> Path:
        return self.get_path('output')
