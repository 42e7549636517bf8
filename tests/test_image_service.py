"""
Tests for grayscale conversion and Gaussian blur.
"""

import numpy as np
import pytest

from models.image import Image
from services.image_service import ImageService


@pytest.fixture
def service():
    return ImageService()


class TestGrayscale:
    """Tests for ImageService.to_grayscale()."""

    @pytest.mark.parametrize("rgb, expected", [
        ((255, 0, 0), 76),
        ((0, 255, 0), 150),
        ((0, 0, 255), 29),
        ((255, 255, 255), 255),
        ((0, 0, 0), 0),
    ])
    def test_luminance_weights(self, service, rgb, expected):
        image = Image(np.full((2, 3, 3), rgb, dtype=np.uint8))
        gray = service.to_grayscale(image)

        assert gray.shape == (2, 3)
        assert (gray == expected).all()


class TestBlur:
    """Tests for ImageService.blur()."""

    def test_kernel_one_is_identity_copy(self, service):
        gray = np.arange(20, dtype=np.uint8).reshape(4, 5)
        blurred = service.blur(gray, 1)

        assert np.array_equal(blurred, gray)
        assert blurred is not gray

    def test_smooths_impulse(self, service):
        gray = np.zeros((9, 9), dtype=np.uint8)
        gray[4, 4] = 255
        blurred = service.blur(gray, 5)

        assert blurred[4, 4] < 255
        assert blurred[4, 5] > 0
        assert blurred.shape == gray.shape

    def test_replicated_border_keeps_uniform_image(self, service):
        gray = np.full((6, 7), 200, dtype=np.uint8)
        assert (service.blur(gray, 7) == 200).all()

    def test_input_untouched(self, service):
        gray = np.random.default_rng(1).integers(0, 256, size=(10, 10), dtype=np.uint8)
        before = gray.copy()
        service.blur(gray, 3)
        assert np.array_equal(gray, before)
