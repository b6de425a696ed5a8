"""
Scene cut detection between consecutive frames.

A cheap color histogram comparison settles most frame pairs; only pairs
that look different enough get the more expensive structural comparison.
"""

import logging

import cv2
import numpy as np

from vidcrop.core.exceptions import CutDetectionError

logger = logging.getLogger(__name__)

_ANALYSIS_SIZE = (160, 90)

# SSIM stabilizing constants for 8-bit images
_C1 = (0.01 * 255) ** 2
_C2 = (0.03 * 255) ** 2


class CutDetector:
    """
    Perceptual similarity based cut test.

    Frames whose HSV histogram correlation is at least `cut_start` belong to
    the same shot. Otherwise the frames are compared structurally and a cut
    is reported when the similarity falls below `cut_similarity`.
    """

    def __init__(self, cut_similarity: float = 0.4, cut_start: float = 0.8):
        self.cut_similarity = cut_similarity
        self.cut_start = cut_start

    def is_cut(self, previous_frame: np.ndarray, current_frame: np.ndarray) -> bool:
        """
        Check whether a hard scene boundary lies between two frames.

        Raises:
            CutDetectionError: If the frames cannot be compared.
        """
        try:
            prev_small = cv2.resize(previous_frame, _ANALYSIS_SIZE)
            curr_small = cv2.resize(current_frame, _ANALYSIS_SIZE)

            correlation = self._histogram_correlation(prev_small, curr_small)
            if correlation >= self.cut_start:
                return False

            similarity = self._structural_similarity(prev_small, curr_small)
        except cv2.error as e:
            raise CutDetectionError(f"Failed to compare frames: {e}") from e

        logger.debug(
            f"cut check: histogram={correlation:.3f}, structure={similarity:.3f}"
        )
        return similarity < self.cut_similarity

    def _compute_histogram(self, frame: np.ndarray) -> np.ndarray:
        """
        Compute a normalized color histogram for a frame.

        Uses HSV color space for better robustness to lighting changes.
        """
        hsv = cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)

        hist_h = cv2.calcHist([hsv], [0], None, [32], [0, 180])
        hist_s = cv2.calcHist([hsv], [1], None, [32], [0, 256])
        hist_v = cv2.calcHist([hsv], [2], None, [32], [0, 256])

        hist = np.concatenate([hist_h, hist_s, hist_v]).flatten()
        hist = hist / (hist.sum() + 1e-6)

        return hist.astype(np.float32)

    def _histogram_correlation(self, frame1: np.ndarray, frame2: np.ndarray) -> float:
        hist1 = self._compute_histogram(frame1)
        hist2 = self._compute_histogram(frame2)
        return float(cv2.compareHist(hist1, hist2, cv2.HISTCMP_CORREL))

    def _structural_similarity(self, frame1: np.ndarray, frame2: np.ndarray) -> float:
        """Mean SSIM of the grayscale frames, using a 7x7 Gaussian window."""
        a = cv2.cvtColor(frame1, cv2.COLOR_BGR2GRAY).astype(np.float64)
        b = cv2.cvtColor(frame2, cv2.COLOR_BGR2GRAY).astype(np.float64)

        mu_a = cv2.GaussianBlur(a, (7, 7), 1.5)
        mu_b = cv2.GaussianBlur(b, (7, 7), 1.5)
        var_a = cv2.GaussianBlur(a * a, (7, 7), 1.5) - mu_a**2
        var_b = cv2.GaussianBlur(b * b, (7, 7), 1.5) - mu_b**2
        cov = cv2.GaussianBlur(a * b, (7, 7), 1.5) - mu_a * mu_b

        ssim_map = ((2 * mu_a * mu_b + _C1) * (2 * cov + _C2)) / (
            (mu_a**2 + mu_b**2 + _C1) * (var_a + var_b + _C2)
        )
        return float(ssim_map.mean())
