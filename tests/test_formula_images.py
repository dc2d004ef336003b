"""
Tests for formula rasterization and sizing.
"""

import threading
import time
from dataclasses import replace

import pytest

from latex_pptx.config import LayoutSettings
from latex_pptx.content_parser import Run, RunKind
from latex_pptx.formula_images import (
    FormulaRasterizer,
    FormulaRenderError,
    MeasuredRun,
    RenderError,
    init_renderer,
    render_with_matplotlib,
    shutdown_renderer,
)


class TestComputeScale:
    """Tests for the complexity-based rendering scale."""

    def test_short_formula_uses_minimum(self, settings, fake_renderer):
        """Test a trivial formula is floored at the minimum scale."""
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        assert rasterizer.compute_scale('x') == pytest.approx(4.0)

    def test_constructs_increase_scale(self, settings, fake_renderer):
        """Test each wide construct adds one step."""
        rasterizer = FormulaRasterizer(settings, fake_renderer)
        latex = r'\frac{a}{b}\sum'

        assert rasterizer.compute_scale(latex) == pytest.approx(3.0 + 2 + len(latex) / 50)

    def test_length_term_is_capped(self, settings, fake_renderer):
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        assert rasterizer.compute_scale('x' * 500) == pytest.approx(5.0)


class TestDisplaySize:
    """Tests for converting pixel size to layout units."""

    def test_natural_size(self, settings, fake_renderer):
        """Test pixels convert through density and oversampling (96 x 2)."""
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        assert rasterizer.display_size(192, 96) == pytest.approx((1.0, 0.5))

    def test_wide_image_capped_with_aspect(self, settings, fake_renderer):
        """Test a very wide formula is limited to 80% of the content column."""
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        width, height = rasterizer.display_size(3000, 100)

        assert width == pytest.approx(settings.max_image_width)
        assert width == pytest.approx(6.4)
        assert width / height == pytest.approx(30.0)

    def test_tiny_image_raised_to_minimum(self, settings, fake_renderer):
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        width, height = rasterizer.display_size(20, 40)

        assert width == pytest.approx(settings.min_image_width)
        assert height == pytest.approx(0.6)

    def test_empty_image_rejected(self, settings, fake_renderer):
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        with pytest.raises(ValueError):
            rasterizer.display_size(0, 10)


class TestRasterize:
    """Tests for FormulaRasterizer.rasterize."""

    def test_renders_formula(self, settings, fake_renderer):
        """Test a formula run becomes a measured image run."""
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        measured = rasterizer.rasterize(Run(RunKind.FORMULA, latex='x^2=4', series_index=3))

        assert measured.kind == RunKind.FORMULA
        assert measured.series_index == 3
        assert measured.image.startswith(b'\x89PNG')
        assert (measured.pixel_width, measured.pixel_height) == (110, 40)
        assert measured.display_width == pytest.approx(110 / 192)
        assert not measured.failed
        assert measured.is_inline_box

    def test_renderer_arguments(self, settings, fake_renderer):
        """Test font size follows the scale and dpi the oversampled density."""
        FormulaRasterizer(settings, fake_renderer).rasterize(Run(RunKind.FORMULA, latex='x'))

        latex, font_size, dpi = fake_renderer.calls[0]
        assert latex == 'x'
        assert font_size == pytest.approx(16.0)
        assert dpi == 192

    def test_render_error_wrapped(self, settings, fake_renderer):
        """Test renderer failures surface as FormulaRenderError with the source."""
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        with pytest.raises(FormulaRenderError) as excinfo:
            rasterizer.rasterize(Run(RunKind.FORMULA, latex=r'\bad{x}'))

        assert excinfo.value.latex == r'\bad{x}'

    def test_text_run_rejected(self, settings, fake_renderer):
        rasterizer = FormulaRasterizer(settings, fake_renderer)

        with pytest.raises(ValueError):
            rasterizer.rasterize(Run(RunKind.TEXT, value='hello'))

    def test_timeout(self, fake_renderer):
        """Test a renderer slower than the timeout is abandoned."""
        settings = LayoutSettings(render_timeout=0.05)

        def slow_renderer(latex, font_size, dpi):
            time.sleep(0.5)
            return fake_renderer(latex, font_size, dpi)

        init_renderer(settings)
        try:
            rasterizer = FormulaRasterizer(settings, slow_renderer)
            with pytest.raises(FormulaRenderError, match='timed out'):
                rasterizer.rasterize(Run(RunKind.FORMULA, latex='x'))
        finally:
            shutdown_renderer()

    def test_formula_after_timeout_still_renders(self, fake_renderer):
        """Test a timed-out formula does not take the next one down with it."""
        settings = LayoutSettings(render_timeout=0.5)

        def renderer(latex, font_size, dpi):
            if latex == 'slow':
                time.sleep(1.5)
            return fake_renderer(latex, font_size, dpi)

        init_renderer(settings)
        try:
            rasterizer = FormulaRasterizer(settings, renderer)
            with pytest.raises(FormulaRenderError, match='timed out'):
                rasterizer.rasterize(Run(RunKind.FORMULA, latex='slow'))
            measured = rasterizer.rasterize(Run(RunKind.FORMULA, latex='x'))
        finally:
            shutdown_renderer()

        assert measured.image is not None
        assert not measured.failed

    def test_queued_formula_timed_from_start(self, fake_renderer):
        """Test a formula waiting behind a slow one still gets rendered."""
        settings = LayoutSettings(render_timeout=0.5)
        errors = []

        def renderer(latex, font_size, dpi):
            if latex == 'slow':
                time.sleep(1.5)
            return fake_renderer(latex, font_size, dpi)

        init_renderer(settings)
        try:
            rasterizer = FormulaRasterizer(settings, renderer)

            def render_slow():
                try:
                    rasterizer.rasterize(Run(RunKind.FORMULA, latex='slow'))
                except FormulaRenderError as e:
                    errors.append(e)

            worker = threading.Thread(target=render_slow)
            worker.start()
            time.sleep(0.1)
            measured = rasterizer.rasterize(Run(RunKind.FORMULA, latex='x'))
            worker.join()
        finally:
            shutdown_renderer()

        assert len(errors) == 1
        assert measured.image is not None


class TestMeasuredRun:
    """Tests for MeasuredRun constructors."""

    def test_from_text_run(self):
        measured = MeasuredRun.from_run(Run(RunKind.TEXT, value='hi', series_index=1))

        assert measured.value == 'hi'
        assert measured.series_index == 1
        assert not measured.is_inline_box

    def test_placeholder(self):
        measured = MeasuredRun.placeholder(Run(RunKind.FORMULA, latex='q'), 0.5, 0.4)

        assert measured.failed
        assert measured.image is None
        assert measured.is_inline_box
        assert (measured.display_width, measured.display_height) == (0.5, 0.4)


class TestMatplotlibRenderer:
    """Tests for the default matplotlib mathtext renderer."""

    def test_renders_png(self, settings):
        init_renderer(settings)
        try:
            result = render_with_matplotlib('x^2 + y^2 = z^2', 16.0, 192)
        finally:
            shutdown_renderer()

        assert result.png.startswith(b'\x89PNG')
        assert result.width_px > result.height_px > 0

    def test_parse_error(self, settings):
        init_renderer(settings)
        try:
            with pytest.raises(RenderError):
                render_with_matplotlib(r'\frac{', 16.0, 192)
        finally:
            shutdown_renderer()

    def test_default_rasterizer_end_to_end(self):
        settings = replace(LayoutSettings(), render_timeout=30.0)
        try:
            measured = FormulaRasterizer(settings).rasterize(Run(RunKind.FORMULA, latex=r'\sqrt{2}'))
        finally:
            shutdown_renderer()

        assert measured.display_width >= settings.min_image_width
        assert measured.display_width <= settings.max_image_width
