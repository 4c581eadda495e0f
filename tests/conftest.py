import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]

# Ensure the flat modules are importable without installing the project.
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend import OpenCVBackend  # noqa: E402
from models import RasterImage  # noqa: E402
from pipeline import AdjustmentPipeline, BufferArena  # noqa: E402


class RecordingArena:
    """Arena factory that remembers every arena it created."""

    def __init__(self):
        self.arenas = []

    def __call__(self):
        arena = BufferArena()
        self.arenas.append(arena)
        return arena


@pytest.fixture
def backend():
    return OpenCVBackend().load()


@pytest.fixture
def arenas():
    return RecordingArena()


@pytest.fixture
def pipeline(backend, arenas):
    return AdjustmentPipeline(backend, arena_factory=arenas)


@pytest.fixture
def solid():
    """Factory for single-color RGBA images."""

    def make(width, height, rgba):
        pixels = np.zeros((height, width, 4), dtype=np.uint8)
        pixels[:] = rgba
        return RasterImage(pixels)

    return make


@pytest.fixture
def random_image():
    rng = np.random.default_rng(1234)
    return RasterImage(rng.integers(0, 256, size=(7, 9, 4), dtype=np.uint8))
