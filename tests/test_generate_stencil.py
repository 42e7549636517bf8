"""
Tests for the bytes-in / PNG-out pipeline helpers.
"""

import base64
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from models.errors import InvalidImageError, InvalidParameterError
from models.stencil_settings import StencilSettings
from pipeline.generate_stencil import (
    render_stencil_data_uri,
    render_stencil_file,
    render_stencil_png,
    stencil_from_bytes,
)


class TestPipeline:
    """Tests for pipeline/generate_stencil.py."""

    def test_png_bytes(self, step_png):
        png = render_stencil_png(step_png, StencilSettings(50, 150, 1))
        result = np.asarray(PILImage.open(BytesIO(png)))

        assert result.shape == (100, 100)
        assert (result[:, 49] == 0).all()

    def test_data_uri_matches_png(self, step_png):
        settings = StencilSettings(50, 150, 1)
        uri = render_stencil_data_uri(step_png, settings)

        prefix = "data:image/png;base64,"
        assert uri.startswith(prefix)
        assert base64.b64decode(uri[len(prefix):]) == render_stencil_png(step_png, settings)

    def test_settings_checked_before_decoding(self):
        with pytest.raises(InvalidParameterError):
            stencil_from_bytes(b"garbage", StencilSettings(blur_radius=0))

    def test_bad_bytes(self):
        with pytest.raises(InvalidImageError):
            stencil_from_bytes(b"garbage")

    def test_file_round_trip(self, tmp_path, step_png):
        source = tmp_path / "in.png"
        source.write_bytes(step_png)

        saved = render_stencil_file(source, tmp_path / "out.png", StencilSettings(255, 255, 1))

        assert (np.asarray(PILImage.open(saved)) == 255).all()
