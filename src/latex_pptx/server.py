"""HTTP surface: deck descriptors in, .pptx documents out."""

import io
import logging
from typing import Optional

from flask import Flask, request, send_file

from .config import Config
from .content_parser import DeckFormatError, DeckSpec, load_deck_file, parse_deck
from .document_builder import PPTX_MIME_TYPE
from .formula_images import Renderer
from .generator import DeckGenerator
from .text_metrics import TextMeasurer

logger = logging.getLogger(__name__)

GENERATION_FAILED = 'Error generating PPT.'
PLAIN_TEXT = {'Content-Type': 'text/plain; charset=utf-8'}


def create_app(config: Optional[Config] = None,
               renderer: Optional[Renderer] = None,
               measure: Optional[TextMeasurer] = None) -> Flask:
    """Create the Flask application.

    Args:
        config: Configuration (defaults to built-in settings).
        renderer: Formula renderer override.
        measure: Text measurer override.

    Returns:
        Configured Flask app.
    """
    config = config or Config.from_dict({})
    generator = DeckGenerator(config, renderer=renderer, measure=measure)

    app = Flask(__name__)
    app.config['DECK_GENERATOR'] = generator

    def send_deck(deck: DeckSpec):
        try:
            data = generator.generate(deck)
        except Exception:
            logger.exception("Error generating PPT")
            return GENERATION_FAILED, 500, PLAIN_TEXT

        return send_file(
            io.BytesIO(data),
            mimetype=PPTX_MIME_TYPE,
            as_attachment=True,
            download_name=config.output_filename,
        )

    @app.route('/ppt', methods=['POST'])
    def generate_ppt():
        payload = request.get_json(silent=True)
        if payload is None:
            return 'Invalid input: expected a JSON deck descriptor.', 400, PLAIN_TEXT
        try:
            deck = parse_deck(payload)
        except DeckFormatError as e:
            return f'Invalid input: {e}', 400, PLAIN_TEXT

        logger.info(f"POST /ppt: {len(deck.slides)} slide(s)")
        return send_deck(deck)

    @app.route('/ppt', methods=['GET'])
    def generate_sample_ppt():
        try:
            deck = load_deck_file(config.sample_deck_path)
        except (FileNotFoundError, DeckFormatError) as e:
            logger.error(f"Sample deck unavailable: {e}")
            return GENERATION_FAILED, 500, PLAIN_TEXT

        logger.info("GET /ppt: sample deck")
        return send_deck(deck)

    @app.route('/health', methods=['GET'])
    def health():
        return 'ok', 200, PLAIN_TEXT

    return app


def serve(config: Config, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the development server."""
    app = create_app(config)
    host = host or config.get('server.host', '0.0.0.0')
    port = port or int(config.get('server.port', 3000))
    logger.info(f"Server listening on {host}:{port}")
    app.run(host=host, port=port)
