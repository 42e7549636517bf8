import logging
import math
from typing import Tuple
import cv2
import numpy as np

logger = logging.getLogger(__name__)

# A 3x3 Sobel response along one axis peaks at 4 * 255, and the two axes can
# never peak together, so hypot(gx, gy) / (4 * sqrt(2)) stays below 255.
_MAGNITUDE_SCALE = 1.0 / (4.0 * math.sqrt(2.0))

# (row, col) step towards the next pixel along the gradient, per direction bin.
_DIRECTION_STEPS = {
    0: (0, 1),      # horizontal gradient → compare left / right
    45: (1, 1),     # down-right (image rows grow downwards)
    90: (1, 0),     # vertical gradient → compare up / down
    135: (1, -1),   # down-left
}


class EdgeDetectionService:
    """
    Canny edge detector on a grayscale uint8 image.

    Gradient magnitudes are expressed in gray-level units (0 .. <255) so
    the two hysteresis thresholds read the same way as pixel intensities.
    Output masks use 255 for edges and 0 for background.
    """

    # ─── Stage 1: gradients ───────────────────────────────────────
    @staticmethod
    def gradients(gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Returns:
            magnitude (np.ndarray): float64 (H, W), normalised to [0, 255).
            angle (np.ndarray): float64 (H, W), gradient direction in degrees [0, 180).
        """
        gx = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3, borderType=cv2.BORDER_REPLICATE)
        gy = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3, borderType=cv2.BORDER_REPLICATE)
        magnitude = np.hypot(gx, gy) * _MAGNITUDE_SCALE
        angle = np.rad2deg(np.arctan2(gy, gx)) % 180.0
        return magnitude, angle

    # ─── Stage 2: non-maximum suppression ─────────────────────────
    @staticmethod
    def _quantise(angle: np.ndarray) -> np.ndarray:
        bins = np.zeros(angle.shape, dtype=np.int16)
        bins[(angle >= 22.5) & (angle < 67.5)] = 45
        bins[(angle >= 67.5) & (angle < 112.5)] = 90
        bins[(angle >= 112.5) & (angle < 157.5)] = 135
        return bins

    def non_maximum_suppression(self, magnitude: np.ndarray, angle: np.ndarray) -> np.ndarray:
        """
        Keep ridge pixels only.  A pixel survives when it is strictly larger
        than its predecessor along the gradient and at least as large as its
        successor, which thins two-pixel plateaus down to one pixel.
        """
        h, w = magnitude.shape
        padded = np.pad(magnitude, 1, mode="constant")

        def shifted(dr: int, dc: int) -> np.ndarray:
            return padded[1 + dr:1 + dr + h, 1 + dc:1 + dc + w]

        bins = self._quantise(angle)
        keep = np.zeros(magnitude.shape, dtype=bool)
        for direction, (dr, dc) in _DIRECTION_STEPS.items():
            in_bin = bins == direction
            is_peak = (magnitude > shifted(-dr, -dc)) & (magnitude >= shifted(dr, dc))
            keep |= in_bin & is_peak

        return np.where(keep, magnitude, 0.0)

    # ─── Stage 3: hysteresis ──────────────────────────────────────
    @staticmethod
    def hysteresis(suppressed: np.ndarray, low: float, high: float) -> np.ndarray:
        """
        Strong pixels (> high) seed the edges; weak pixels (> low) are kept
        only when 8-connected to a strong pixel through other weak pixels.
        If ``low > high`` the two bounds are swapped.

        Returns:
            (np.ndarray): uint8 mask, 255 on edges, 0 elsewhere.
        """
        low, high = min(low, high), max(low, high)
        candidates = suppressed > low
        strong = suppressed > high

        if not strong.any():
            return np.zeros(suppressed.shape, dtype=np.uint8)

        _, labels = cv2.connectedComponents(candidates.astype(np.uint8), connectivity=8)
        strong_labels = np.unique(labels[strong])
        edges = np.isin(labels, strong_labels) & candidates
        return edges.astype(np.uint8) * 255

    # ─── Public API ───────────────────────────────────────────────
    def detect(self, gray: np.ndarray, low: int, high: int) -> np.ndarray:
        magnitude, angle = self.gradients(gray)
        suppressed = self.non_maximum_suppression(magnitude, angle)
        mask = self.hysteresis(suppressed, low, high)
        logger.debug(f"Canny low={low} high={high}: {int(np.count_nonzero(mask))} edge pixels")
        return mask

    @staticmethod
    def invert(mask: np.ndarray) -> np.ndarray:
        """Swap edge and background values; applying it twice is a no-op."""
        return cv2.bitwise_not(mask)
