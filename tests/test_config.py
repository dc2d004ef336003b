"""
Tests for configuration loading.
"""

import pytest

from latex_pptx.config import Config, LayoutSettings, merge_dicts


class TestMergeDicts:
    """Tests for merge_dicts."""

    def test_nested_overlay(self):
        base = {'layout': {'left_margin': 1.0, 'font_size': 16}, 'paths': {'output': 'a'}}
        overlay = {'layout': {'font_size': 18}}

        merged = merge_dicts(base, overlay)

        assert merged['layout'] == {'left_margin': 1.0, 'font_size': 18}
        assert merged['paths'] == {'output': 'a'}
        assert base['layout']['font_size'] == 16


class TestConfig:
    """Tests for the Config manager."""

    def test_defaults(self, config):
        assert config.get('layout.slide_width') == 10.0
        assert config.get('layout.missing', 'fallback') == 'fallback'
        assert config.strict is False
        assert config.output_filename == 'GeneratedPresentation.pptx'

    def test_from_dict_overrides(self):
        config = Config.from_dict({'layout': {'left_margin': 0.5}, 'settings': {'strict': True}})

        assert config.get('layout.left_margin') == 0.5
        assert config.get('layout.right_margin') == 1.0
        assert config.strict is True

    def test_yaml_file(self, tmp_path):
        (tmp_path / 'config.yaml').write_text(
            'paths:\n'
            '  project_root: "."\n'
            '  input: "deck.json"\n'
            'renderer:\n'
            '  timeout: 2.5\n',
            encoding='utf-8',
        )

        config = Config(str(tmp_path / 'config.yaml'))

        assert config.input_path == tmp_path.resolve() / 'deck.json'
        assert config.layout_settings().render_timeout == 2.5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config(str(tmp_path / 'absent.yaml'))

    def test_set_overrides_path(self, config, tmp_path):
        config.set('paths.output', str(tmp_path / 'x.pptx'))

        assert config.output_path == (tmp_path / 'x.pptx').resolve()

    def test_validate_paths(self, tmp_path):
        config = Config.from_dict({'paths': {'input': str(tmp_path / 'none.json')}})

        with pytest.raises(FileNotFoundError):
            config.validate_paths()


class TestLayoutSettings:
    """Tests for LayoutSettings."""

    def test_from_config(self, config):
        settings = config.layout_settings()

        assert settings == LayoutSettings()

    def test_unknown_keys_ignored(self):
        config = Config.from_dict({'layout': {'not_a_setting': 1}})

        assert config.layout_settings() == LayoutSettings()

    def test_derived_values(self):
        settings = LayoutSettings()

        assert settings.usable_width == pytest.approx(8.0)
        assert settings.right_edge == pytest.approx(9.0)
        assert settings.max_image_width == pytest.approx(6.4)
        assert settings.content_top_for(True) == 1.8
        assert settings.content_top_for(False) == 1.5
