"""Command-line interface for the LaTeX slide-deck generator."""

import argparse
import sys
import logging
from pathlib import Path

from .config import Config
from .content_parser import DeckFormatError
from .generator import DeckGenerator

DEFAULT_CONFIG_PATH = 'configs/config.yaml'


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Generate a PowerPoint deck from slide content with inline LaTeX formulas.'
    )

    parser.add_argument(
        '--config',
        default=DEFAULT_CONFIG_PATH,
        help=f'Path to configuration file (default: {DEFAULT_CONFIG_PATH})'
    )

    parser.add_argument(
        '--input',
        help='Path to JSON/YAML deck descriptor (overrides config)'
    )

    parser.add_argument(
        '--output',
        help='Path to output PowerPoint file (overrides config)'
    )

    parser.add_argument(
        '--serve',
        action='store_true',
        help='Run the HTTP server instead of generating a single file'
    )

    parser.add_argument('--host', help='Server host (overrides config)')
    parser.add_argument('--port', type=int, help='Server port (overrides config)')

    return parser.parse_args(argv)


def load_config(config_path: str) -> Config:
    """Load the configuration file; the default path may be absent."""
    if config_path == DEFAULT_CONFIG_PATH and not Path(config_path).exists():
        return Config.from_dict({})
    return Config(config_path)


def main(argv=None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_arguments(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        print(f"Please ensure the configuration file exists at: {args.config}")
        return 1
    except Exception as e:
        print(f"Error loading configuration: {e}")
        return 1

    if args.input:
        config.set('paths.input', args.input)
    if args.output:
        config.set('paths.output', args.output)

    if args.serve:
        from .server import serve
        serve(config, host=args.host, port=args.port)
        return 0

    print("=" * 60)
    print("LaTeX Slide Deck Generator")
    print("=" * 60)
    print(f"Configuration: {args.config}")
    print(f"Input:         {config.get('paths.input', '(not set)')}")
    print(f"Output:        {config.output_path}")
    print("=" * 60)

    try:
        generator = DeckGenerator(config)
        output = generator.generate_file()
    except (FileNotFoundError, DeckFormatError) as e:
        print(f"\nError: {e}")
        return 1
    except Exception as e:
        logging.exception("Error generating presentation")
        print(f"\nError generating presentation: {e}")
        return 1

    print("\n" + "=" * 60)
    print(f"Done! Wrote {output}")
    print("=" * 60)
    return 0


if __name__ == '__main__':
    sys.exit(main())
