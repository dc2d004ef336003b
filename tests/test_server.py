"""
Tests for the HTTP surface.
"""

import io

import pytest
from pptx import Presentation

from latex_pptx.config import Config
from latex_pptx.document_builder import PPTX_MIME_TYPE
from latex_pptx.server import create_app


@pytest.fixture
def app(config, fake_renderer, measure):
    app = create_app(config, renderer=fake_renderer, measure=measure)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


class TestPostPpt:
    """Tests for POST /ppt."""

    def test_returns_presentation(self, client, sample_deck):
        response = client.post('/ppt', json=sample_deck)

        assert response.status_code == 200
        assert response.mimetype == PPTX_MIME_TYPE
        assert 'attachment' in response.headers['Content-Disposition']
        assert 'GeneratedPresentation.pptx' in response.headers['Content-Disposition']
        assert len(Presentation(io.BytesIO(response.data)).slides) == 2

    def test_invalid_descriptor(self, client):
        response = client.post('/ppt', json={'slides': 'nope'})

        assert response.status_code == 400
        assert response.mimetype == 'text/plain'

    def test_non_json_body(self, client):
        response = client.post('/ppt', data='slides', content_type='text/plain')

        assert response.status_code == 400

    def test_generation_failure(self, app, client, sample_deck, monkeypatch):
        """Test unexpected failures give a plain 500 and no document."""
        def boom(deck):
            raise RuntimeError('renderer crashed')

        monkeypatch.setattr(app.config['DECK_GENERATOR'], 'generate', boom)

        response = client.post('/ppt', json=sample_deck)

        assert response.status_code == 500
        assert response.get_data(as_text=True) == 'Error generating PPT.'


class TestGetPpt:
    """Tests for GET /ppt and /health."""

    def test_sample_deck(self, tmp_path, fake_renderer, measure):
        sample = tmp_path / 'sample.yaml'
        sample.write_text(
            'slides:\n'
            '  - title: "Sample"\n'
            '    content: "<p>Energy is $E = mc^2$.</p>"\n',
            encoding='utf-8',
        )
        config = Config.from_dict({'paths': {'sample': str(sample)}})
        client = create_app(config, renderer=fake_renderer, measure=measure).test_client()

        response = client.get('/ppt')

        assert response.status_code == 200
        assert len(Presentation(io.BytesIO(response.data)).slides) == 1

    def test_missing_sample_deck(self, tmp_path, fake_renderer, measure):
        config = Config.from_dict({'paths': {'sample': str(tmp_path / 'none.yaml')}})
        client = create_app(config, renderer=fake_renderer, measure=measure).test_client()

        response = client.get('/ppt')

        assert response.status_code == 500

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_data(as_text=True) == 'ok'
