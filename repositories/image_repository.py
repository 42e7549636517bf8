import base64
import logging
from io import BytesIO
from pathlib import Path
from typing import Union
import numpy as np
import cv2
from PIL import Image as PILImage
from models.image import Image
from models.stencil_image import StencilImage
from models.errors import InvalidImageError

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Handles byte/file I/O for Image and StencilImage entities.
    """

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    @staticmethod
    def decode(data: bytes, path: Union[str, Path] = None) -> Image:
        """
        Decode PNG/JPEG (or anything else OpenCV reads) into an RGB Image.
        Grayscale and alpha inputs are expanded / flattened to three channels.
        """
        if not data:
            raise InvalidImageError("Empty image data")

        arr_bgr = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        if arr_bgr is None or arr_bgr.size == 0:
            raise InvalidImageError("Could not decode image data as a raster image")

        arr = np.ascontiguousarray(arr_bgr[:, :, ::-1])
        logger.debug(f"Decoded image {arr.shape[1]}x{arr.shape[0]} ({len(data)} bytes)")
        return ImageRepository.create_image(arr, path)

    @staticmethod
    def load(path: Union[str, Path]) -> Image:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as err:
            raise InvalidImageError(f"Could not read image {path}: {err.strerror or err}") from None
        return ImageRepository.decode(data, path)

    @staticmethod
    def encode_png(stencil: StencilImage) -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(stencil.pixels)).save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def encode_source_png(image: Image) -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(image.pixels)).save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def as_data_uri(png_bytes: bytes) -> str:
        base64_string = base64.b64encode(png_bytes).decode("utf-8")
        return f"data:image/png;base64,{base64_string}"

    def to_data_uri(self, stencil: StencilImage) -> str:
        return self.as_data_uri(self.encode_png(stencil))

    def save(self, stencil: StencilImage, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.write_bytes(self.encode_png(stencil))
        return path
