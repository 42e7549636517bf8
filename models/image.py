from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np


@dataclass(frozen=True)
class Image:
    """
    Simple data object: RGB pixels (+ optional source path for bookkeeping).
    Decoded once per upload and never modified afterwards.
    """
    pixels: np.ndarray # Shape (H, W, 3), dtype uint8, RGB order.
    path: Path | None = None # Source of the image.

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])
