from __future__ import annotations
from dataclasses import dataclass
import numpy as np
from models.stencil_settings import StencilSettings


@dataclass(frozen=True)
class StencilImage:
    """
    Result of one transform call.
    Pixels are single channel (H, W) uint8, every value either 0 or 255.
    """
    pixels: np.ndarray
    settings: StencilSettings # Normalised settings that produced the pixels.

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def edge_value(self) -> int:
        return 0 if self.settings.inverted else 255

    def edge_count(self) -> int:
        """Number of pixels carrying the edge value."""
        return int(np.count_nonzero(self.pixels == self.edge_value))
