from pathlib import Path
from typing import Union
import cv2
import numpy as np
from models.image import Image
from models.stencil_image import StencilImage
from repositories.image_repository import ImageRepository


class ImageService:
    """Pixel-level preprocessing plus I/O delegation.  No edge logic here."""
    def __init__(self):
        self.image_repository = ImageRepository()

    def load(self, path: str | Path) -> Image:
        """Load a single image from disk into an Image object."""
        return self.image_repository.load(path)

    def decode(self, data: bytes) -> Image:
        """Decode uploaded bytes into an Image object."""
        return self.image_repository.decode(data)

    @staticmethod
    def to_grayscale(img: Image) -> np.ndarray:
        """
        Luminance Y = 0.299 R + 0.587 G + 0.114 B, rounded to uint8.

        Returns:
            (np.ndarray): (H, W) uint8 array; the input pixels are untouched.
        """
        return cv2.cvtColor(img.pixels, cv2.COLOR_RGB2GRAY)

    @staticmethod
    def blur(grayscale_pixels: np.ndarray, kernel_size: int) -> np.ndarray:
        """
        Gaussian blur with a ``kernel_size x kernel_size`` kernel.

        Sigma is left to OpenCV, which derives
        ``0.3 * ((k - 1) * 0.5 - 1) + 0.8`` from the kernel size.
        Borders replicate the outermost pixel.  ``kernel_size == 1`` is a copy.

        Args:
            grayscale_pixels (np.ndarray): (H, W) uint8 image.
            kernel_size (int): Odd, >= 1.
        """
        if kernel_size == 1:
            return grayscale_pixels.copy()
        return cv2.GaussianBlur(
            grayscale_pixels,
            (kernel_size, kernel_size),
            0,
            borderType=cv2.BORDER_REPLICATE,
        )

    def encode_png(self, stencil: StencilImage) -> bytes:
        return self.image_repository.encode_png(stencil)

    def to_data_uri(self, stencil: StencilImage) -> str:
        return self.image_repository.to_data_uri(stencil)

    def source_data_uri(self, img: Image) -> str:
        """PNG data URI of the untouched source, for side-by-side previews."""
        return self.image_repository.as_data_uri(self.image_repository.encode_source_png(img))

    def save(self, stencil: StencilImage, path: Union[str, Path]) -> Path:
        """
        Business-level method to save the stencil to a specific path.
        """
        return self.image_repository.save(stencil, path)
