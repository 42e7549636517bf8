"""
Stencil Pipeline
Bytes in, PNG out.  Shared by the HTTP API, the dashboard and the CLI so
that every front-end runs exactly the same transform.
"""

import logging
from pathlib import Path
from typing import Union

from models.stencil_image import StencilImage
from models.stencil_settings import StencilSettings
from services.image_service import ImageService
from services.stencil_service import StencilService

logger = logging.getLogger(__name__)

DOWNLOAD_NAME = "inkflow-stencil.png"


def stencil_from_bytes(
    data: bytes,
    settings: StencilSettings = None,
    *,
    image_service: ImageService = None,
    stencil_service: StencilService = None,
) -> StencilImage:
    """
    Decode an uploaded image and run the stencil transform on it.

    Args:
        data: Raw PNG/JPEG bytes.
        settings: Stencil knobs; ``None`` uses the service defaults.
        image_service: Service for decoding.
        stencil_service: Service running the transform.

    Returns:
        StencilImage: Result with the same width/height as the upload.
    """
    image_service = image_service or ImageService()
    stencil_service = stencil_service or StencilService()

    # Settings are validated before decoding
    settings = (settings or stencil_service.defaults).normalized()
    image = image_service.decode(data)
    logger.info(f"Generating stencil for {image.width}x{image.height} image")
    return stencil_service.generate_stencil(image, settings)


def render_stencil_png(data: bytes, settings: StencilSettings = None, **services) -> bytes:
    """Run the transform and return PNG bytes, ready for a download response."""
    stencil = stencil_from_bytes(data, settings, **services)
    image_service = services.get("image_service") or ImageService()
    return image_service.encode_png(stencil)


def render_stencil_data_uri(data: bytes, settings: StencilSettings = None, **services) -> str:
    """Run the transform and return a ``data:image/png;base64,...`` string for previews."""
    stencil = stencil_from_bytes(data, settings, **services)
    image_service = services.get("image_service") or ImageService()
    return image_service.to_data_uri(stencil)


def render_stencil_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    settings: StencilSettings = None,
    **services,
) -> Path:
    """Read ``input_path``, write the stencil PNG to ``output_path``."""
    input_path = Path(input_path)
    image_service = services.get("image_service") or ImageService()
    image = image_service.load(input_path)
    stencil_service = services.get("stencil_service") or StencilService()
    stencil = stencil_service.generate_stencil(image, settings)
    saved = image_service.save(stencil, output_path)
    logger.info(f"Stencil for {input_path.name} saved to {saved}")
    return saved
