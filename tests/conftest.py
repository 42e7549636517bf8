from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from models.image import Image
from services.stencil_service import StencilService


def make_step_pixels(height: int = 100, width: int = 100, column: int = 50) -> np.ndarray:
    """Black on the left of ``column``, white from ``column`` on."""
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, column:] = 255
    return pixels


def to_png_bytes(pixels: np.ndarray) -> bytes:
    buffer = BytesIO()
    PILImage.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def step_image() -> Image:
    return Image(make_step_pixels())


@pytest.fixture
def uniform_image() -> Image:
    return Image(np.full((64, 80, 3), 137, dtype=np.uint8))


@pytest.fixture
def noisy_image() -> Image:
    rng = np.random.default_rng(7)
    return Image(rng.integers(0, 256, size=(60, 90, 3), dtype=np.uint8))


@pytest.fixture
def step_png() -> bytes:
    return to_png_bytes(make_step_pixels())


@pytest.fixture
def stencil_service() -> StencilService:
    return StencilService()
