import time
from contextlib import contextmanager

from color_adjust import ColorAdjuster
from errors import BackendUnavailableError, EditorError, MissingSourceError, ProcessingError
from models import RasterImage
from processors import FilterRegistry
from utils import flip_code, get_logger

logger = get_logger(__name__)

STAGES = (
    "flip",
    "prepare",
    "brightness_contrast",
    "saturation",
    "hue",
    "blur",
    "sharpen",
    "filter",
    "finalize",
)


class BufferArena:
    """
    Owns the intermediate buffers of one pipeline run.
    Use as a context manager: every tracked buffer is released exactly once
    on exit, whether the run succeeded or failed.

    Releasing only drops the arena's own references. The memory goes back
    to numpy once nothing else (the run's locals, the returned image) holds
    the array, so allocated/released count references, not bytes freed.
    """

    def __init__(self):
        self._buffers = []
        self.allocated = 0
        self.released = 0
        self.closed = False

    def track(self, buffer):
        if self.closed:
            raise RuntimeError("BufferArena is already released")
        # Skipped stages hand back the buffer they received
        if not any(buffer is b for b in self._buffers):
            self._buffers.append(buffer)
            self.allocated += 1
        return buffer

    def track_all(self, buffers):
        return [self.track(b) for b in buffers]

    @property
    def live(self):
        return len(self._buffers)

    def release(self):
        if self.closed:
            return
        self.released += len(self._buffers)
        self._buffers.clear()
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


@contextmanager
def run_stage(name):
    """
    Wraps backend failures inside a stage into ProcessingError(stage=name).
    """
    logger.debug("Stage %s", name)
    try:
        yield
    except EditorError:
        raise
    except Exception as e:
        raise ProcessingError(name, f"Stage '{name}' failed: {e}") from e


class AdjustmentPipeline:
    """
    Applies AdjustmentParameters to a RasterImage.

    Order: Flip -> Brightness/Contrast -> Saturation -> Hue -> Blur -> Sharpen
    -> Named filter -> Alpha. The order is fixed; identity parameters skip
    their stage, so default parameters return the source pixels unchanged.
    """

    def __init__(self, backend, arena_factory=BufferArena):
        self.backend = backend
        self.arena_factory = arena_factory

    def apply(self, source, params):
        if not self.backend.is_ready():
            raise BackendUnavailableError(f"{self.backend.name} backend is not loaded")
        if source is None:
            raise MissingSourceError("No source image")
        if not isinstance(source, RasterImage) or source.width == 0 or source.height == 0:
            raise MissingSourceError("Source image is empty or unreadable")

        t0 = time.perf_counter()
        with self.arena_factory() as arena:
            try:
                result = self._run(arena, source, params)
            except ProcessingError as e:
                logger.warning("Processing failed at stage %s: %s", e.stage, e)
                raise

        duration = (time.perf_counter() - t0) * 1000
        logger.info("Processed %dx%d in %.1f ms", source.width, source.height, duration)
        return result

    def _run(self, arena, source, params):
        backend = self.backend

        # Work on a copy; the source stays untouched
        img = arena.track(source.pixels.copy())

        # 1. Geometric flip, before any spatially local operation
        with run_stage("flip"):
            code = flip_code(params.flip_horizontal, params.flip_vertical)
            if code is not None:
                img = arena.track(backend.flip(img, code))

        with run_stage("prepare"):
            alpha = arena.track_all(backend.split(img))[3]
            rgb = arena.track(backend.convert_color(img, 'RGBA2RGB'))

        # 2. Brightness & Contrast
        with run_stage("brightness_contrast"):
            rgb = arena.track(ColorAdjuster.apply_brightness_contrast(
                backend, rgb, params.brightness, params.contrast))

        # 3. + 4. Saturation and Hue share one HSV conversion
        if params.saturation != 100 or params.hue != 0:
            with run_stage("saturation"):
                channels = arena.track_all(ColorAdjuster.to_hsv_channels(backend, rgb))
                channels = arena.track_all(ColorAdjuster.apply_saturation(
                    backend, channels, params.saturation))
            with run_stage("hue"):
                channels = arena.track_all(ColorAdjuster.apply_hue(backend, channels, params.hue))
                rgb = arena.track(ColorAdjuster.from_hsv_channels(backend, channels))

        # 5. Blur
        with run_stage("blur"):
            rgb = arena.track(ColorAdjuster.apply_blur(backend, rgb, params.blur))

        # 6. Sharpen (fixed 5x5 mask, independent of blur)
        with run_stage("sharpen"):
            rgb = arena.track(ColorAdjuster.apply_sharpen(backend, rgb, params.sharpen))

        # 7. Named filter
        with run_stage("filter"):
            processor = FilterRegistry.get_filter(params.selected_filter)
            if processor is None:
                raise ProcessingError("filter", f"No filter registered for {params.selected_filter!r}")
            rgb = arena.track(processor.apply(backend, rgb))

        # 8. Reattach alpha
        with run_stage("finalize"):
            r, g, b = arena.track_all(backend.split(rgb))
            return RasterImage(backend.merge([r, g, b, alpha]))
