"""Formula rasterization for inline slide images.

Each formula run is rendered to a transparent PNG with matplotlib mathtext,
then sized for the slide: pixel dimensions are converted to layout units and
clamped between a minimum legible width and a fraction of the content column,
always preserving the aspect ratio.

The renderer is configured once per process (``init_renderer``); requests
only read that state.
"""

import io
import re
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Optional

from PIL import Image

from .config import LayoutSettings
from .content_parser import Run, RunKind

logger = logging.getLogger(__name__)

# Constructs that make a formula visibly taller or wider than its length suggests
WIDE_CONSTRUCTS = re.compile(r'\\(frac|sum|int|sqrt|prod)')


class RenderError(Exception):
    """The formula renderer could not typeset the source."""


class FormulaRenderError(Exception):
    """Rendering a formula run failed or timed out."""

    def __init__(self, latex: str, reason: str = ''):
        self.latex = latex
        self.reason = reason
        message = f"Could not render formula '{latex}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


@dataclass
class RenderResult:
    """PNG bytes plus their pixel size."""
    png: bytes
    width_px: int
    height_px: int


# renderer(latex, font_size_pt, dpi) -> RenderResult
Renderer = Callable[[str, float, int], RenderResult]


@dataclass
class MeasuredRun:
    """A run ready for layout.

    Formula runs carry the rendered image and its display size; text and break
    runs carry no size (text is measured word by word during layout). A formula
    whose rendering failed keeps ``image=None`` and ``failed=True`` and is laid
    out as a placeholder of the given display size.
    """
    kind: RunKind
    series_index: int = 0
    value: str = ''
    latex: str = ''
    image: Optional[bytes] = None
    pixel_width: int = 0
    pixel_height: int = 0
    display_width: float = 0.0
    display_height: float = 0.0
    failed: bool = False

    @classmethod
    def from_run(cls, run: Run) -> "MeasuredRun":
        return cls(kind=run.kind, series_index=run.series_index,
                   value=run.value, latex=run.latex)

    @classmethod
    def placeholder(cls, run: Run, width: float, height: float) -> "MeasuredRun":
        return cls(kind=RunKind.FORMULA, series_index=run.series_index,
                   latex=run.latex, display_width=width, display_height=height,
                   failed=True)

    @property
    def is_inline_box(self) -> bool:
        """Formula images and their placeholders flow as fixed-size boxes."""
        return self.kind == RunKind.FORMULA


# Process-wide renderer state, set up once by init_renderer
_init_lock = threading.Lock()
_executor: Optional[ThreadPoolExecutor] = None

# Seconds between checks on a job still waiting for the render worker
QUEUE_POLL_INTERVAL = 0.05


def init_renderer(settings: LayoutSettings) -> None:
    """Configure matplotlib for mathtext rendering (idempotent).

    Args:
        settings: Layout settings carrying the mathtext font set.
    """
    global _executor
    with _init_lock:
        if _executor is not None:
            return
        import matplotlib
        matplotlib.use('Agg')
        matplotlib.rcParams.update({
            'mathtext.fontset': settings.fontset,
            'figure.max_open_warning': 0,
        })
        # One worker: matplotlib text rendering is not thread-safe
        _executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='formula-render')
        logger.info(f"Formula renderer ready (mathtext fontset '{settings.fontset}')")


def shutdown_renderer() -> None:
    """Stop the render worker; a later init_renderer starts a fresh one."""
    global _executor
    with _init_lock:
        if _executor is not None:
            _executor.shutdown(wait=False)
        _executor = None


def _replace_executor(stale: ThreadPoolExecutor) -> None:
    """Retire a worker stuck on a timed-out formula and start a fresh one."""
    global _executor
    with _init_lock:
        if _executor is not stale:
            return
        stale.shutdown(wait=False)
        _executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='formula-render')
    logger.warning("Formula render worker timed out; started a replacement")


def _wait_started(executor: ThreadPoolExecutor, future: Future, started: threading.Event) -> bool:
    """Block until the worker starts a job.

    Returns False when the job was still queued on a worker that has since
    been replaced; the job is withdrawn and must be submitted again.
    """
    while not started.wait(QUEUE_POLL_INTERVAL):
        if _executor is not executor and future.cancel():
            return False
    return True


def render_with_matplotlib(latex: str, font_size: float, dpi: int) -> RenderResult:
    """Typeset ``latex`` with matplotlib mathtext into a tight, transparent PNG.

    Raises:
        RenderError: If mathtext cannot parse the source.
    """
    from matplotlib.figure import Figure
    from matplotlib.backends.backend_agg import FigureCanvasAgg

    fig = Figure(figsize=(0.01, 0.01))
    FigureCanvasAgg(fig)
    fig.text(0, 0, f'${latex}$', fontsize=font_size)

    buffer = io.BytesIO()
    try:
        fig.savefig(buffer, format='png', dpi=dpi, bbox_inches='tight',
                    pad_inches=0.02, transparent=True)
    except (ValueError, RuntimeError) as e:
        raise RenderError(str(e)) from e

    png = buffer.getvalue()
    with Image.open(io.BytesIO(png)) as img:
        width_px, height_px = img.size
    return RenderResult(png=png, width_px=width_px, height_px=height_px)


class FormulaRasterizer:
    """Render formula runs and size them for inline placement."""

    def __init__(self, settings: LayoutSettings, renderer: Optional[Renderer] = None):
        self.settings = settings
        self.renderer = renderer or render_with_matplotlib
        if renderer is None:
            init_renderer(settings)

    def compute_scale(self, latex: str) -> float:
        """Rendering scale from formula complexity.

        Base scale, plus a step per wide construct, plus a capped length term,
        floored so that short formulas stay legible.
        """
        s = self.settings
        constructs = len(WIDE_CONSTRUCTS.findall(latex))
        length_term = min(len(latex) / s.length_divisor, s.length_cap)
        scale = s.base_scale + s.construct_weight * constructs + length_term
        return max(scale, s.min_scale)

    def display_size(self, width_px: int, height_px: int) -> tuple[float, float]:
        """Convert pixel size to layout units, clamped with aspect preserved.

        Args:
            width_px: Rendered width in pixels.
            height_px: Rendered height in pixels.

        Returns:
            (width, height) in layout units.
        """
        if width_px <= 0 or height_px <= 0:
            raise ValueError(f"Invalid image size {width_px}x{height_px}")

        s = self.settings
        density = s.pixel_density * s.oversample
        aspect = width_px / height_px

        width = width_px / density
        height = height_px / density

        if width > s.max_image_width:
            width = s.max_image_width
            height = width / aspect

        if width < s.min_image_width:
            width = s.min_image_width
            height = width / aspect

        return width, height

    def _render(self, latex: str, font_size: float, dpi: int) -> RenderResult:
        while True:
            started = threading.Event()

            def job():
                started.set()
                return self.renderer(latex, font_size, dpi)

            with _init_lock:
                executor = _executor
                future = executor.submit(job) if executor is not None else None
            if future is None:
                return self.renderer(latex, font_size, dpi)

            # The deadline runs from when the worker picks the job up
            if not _wait_started(executor, future, started):
                continue
            try:
                return future.result(timeout=self.settings.render_timeout)
            except FutureTimeoutError:
                _replace_executor(executor)
                raise FormulaRenderError(latex, f"timed out after {self.settings.render_timeout}s")

    def rasterize(self, run: Run) -> MeasuredRun:
        """Render one formula run.

        Args:
            run: A formula run.

        Returns:
            MeasuredRun with image bytes and display size.

        Raises:
            FormulaRenderError: If the renderer fails or times out.
        """
        if run.kind != RunKind.FORMULA:
            raise ValueError(f"Cannot rasterize a {run.kind.value} run")

        scale = self.compute_scale(run.latex)
        font_size = scale * self.settings.points_per_scale
        dpi = self.settings.pixel_density * self.settings.oversample

        try:
            result = self._render(run.latex, font_size, dpi)
        except RenderError as e:
            raise FormulaRenderError(run.latex, str(e)) from e

        try:
            width, height = self.display_size(result.width_px, result.height_px)
        except ValueError as e:
            raise FormulaRenderError(run.latex, str(e)) from e

        logger.debug(
            f"  Formula '{run.latex}': scale {scale:.2f}, "
            f"{result.width_px}x{result.height_px}px -> {width:.2f}x{height:.2f}in"
        )
        return MeasuredRun(
            kind=RunKind.FORMULA,
            series_index=run.series_index,
            latex=run.latex,
            image=result.png,
            pixel_width=result.width_px,
            pixel_height=result.height_px,
            display_width=width,
            display_height=height,
        )
