import logging
import os
import time
from dotenv import load_dotenv

from models.image import Image
from models.stencil_image import StencilImage
from models.stencil_settings import StencilSettings
from models.errors import InvalidImageError
from services.image_service import ImageService
from services.edge_detection_service import EdgeDetectionService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class StencilService:
    """
    Photo → line-art stencil.
    *   Pure: the same (image, settings) pair always yields identical pixels.
    *   No I/O here, works only with Image objects (RGB numpy arrays).
    *   Default settings come from environment variables.
    """

    def __init__(self,
                 image_service: ImageService = None,
                 edge_service: EdgeDetectionService = None):
        self.image_service = image_service or ImageService()
        self.edge_service = edge_service or EdgeDetectionService()

        self.defaults = StencilSettings(
            low_threshold=os.getenv("STENCIL_LOW_THRESHOLD", "30"),
            high_threshold=os.getenv("STENCIL_HIGH_THRESHOLD", "100"),
            blur_radius=os.getenv("STENCIL_BLUR_RADIUS", "2"),
            inverted=os.getenv("STENCIL_INVERTED", "true"),
        ).normalized()

    def generate_stencil(self, image: Image, settings: StencilSettings = None) -> StencilImage:
        """
        Grayscale → Gaussian blur → Canny → optional inversion.

        Args:
            image: Source image, RGB uint8 (H, W, 3).
            settings: Stencil knobs; ``None`` uses the configured defaults.

        Returns:
            StencilImage: (H, W) uint8 mask with the same size as ``image``.

        Raises:
            InvalidParameterError: a setting is outside its domain after coercion.
            InvalidImageError: ``image`` does not hold RGB pixels.
        """
        settings = (settings or self.defaults).normalized()
        self._check_pixels(image)

        start = time.perf_counter()
        gray = self.image_service.to_grayscale(image)
        blurred = self.image_service.blur(gray, settings.blur_radius)
        mask = self.edge_service.detect(blurred, settings.low_threshold, settings.high_threshold)
        if settings.inverted:
            mask = self.edge_service.invert(mask)

        logger.debug(
            f"Stencil {image.width}x{image.height} {settings} "
            f"in {(time.perf_counter() - start) * 1000:.1f} ms"
        )
        return StencilImage(pixels=mask, settings=settings)

    @staticmethod
    def _check_pixels(image: Image) -> None:
        pixels = getattr(image, "pixels", None)
        if (
            pixels is None
            or pixels.ndim != 3
            or pixels.shape[2] != 3
            or pixels.shape[0] == 0
            or pixels.shape[1] == 0
        ):
            raise InvalidImageError("Expected an RGB image with shape (H, W, 3)")
        if pixels.dtype != "uint8":
            raise InvalidImageError(f"Expected uint8 pixels, got {pixels.dtype}")
