"""
OpenCV video I/O helpers.
"""

import contextlib
import io
import logging
import sys
from typing import Iterator

import cv2
import numpy as np

from vidcrop.core.exceptions import VideoOpenError
from vidcrop.core.utils.ffmpeg import filter_benign_warnings

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def suppress_ffmpeg_warnings():
    """
    Context manager to suppress FFmpeg warnings from OpenCV operations.

    Benign decoder warnings are dropped; anything else is written back to
    stderr once the block exits.
    """
    original_stderr = sys.stderr
    stderr_capture = io.StringIO()
    try:
        sys.stderr = stderr_capture
        yield
    finally:
        sys.stderr = original_stderr
        captured = stderr_capture.getvalue()
        if captured:
            filtered, warnings = filter_benign_warnings(captured)
            if warnings:
                logger.debug(f"Suppressed {len(warnings)} FFmpeg warnings from OpenCV")
            if filtered.strip():
                original_stderr.write(filtered)


def open_video(video_path: str) -> cv2.VideoCapture:
    """
    Open a video file with suppressed FFmpeg warnings.

    Raises:
        VideoOpenError: If the file cannot be opened.
    """
    with suppress_ffmpeg_warnings():
        cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        cap.release()
        raise VideoOpenError(f"Failed to open video: {video_path}")
    return cap


def iter_frames(cap: cv2.VideoCapture) -> Iterator[np.ndarray]:
    """Yield frames until the capture is exhausted."""
    while True:
        ret, frame = cap.read()
        if not ret:
            break
        yield frame
