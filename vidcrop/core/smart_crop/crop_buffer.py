"""
Time-windowed crop buffer.

A simpler alternative to history smoothing: frames are collected for up to
`buffer_seconds` and released in bulk under a single crop. No interpolation.
"""

import logging
from collections import deque
from typing import Any, Optional

from vidcrop.core.smart_crop.models import CropResult, EmittedFrame
from vidcrop.core.smart_crop.similarity import is_crop_similar

logger = logging.getLogger(__name__)


class CropBuffer:
    """
    Fixed-duration frame buffer with a short memory of recent crops.
    """

    def __init__(
        self,
        buffer_seconds: float,
        fps: float,
        similarity_threshold: float = 10.0,
        history_size: int = 5,
    ):
        self.frames: deque[tuple[Any, CropResult, float]] = deque()
        self.max_buffer_size = max(0, int(round(buffer_seconds * fps)))
        self.similarity_threshold = similarity_threshold
        self.crop_history: deque[CropResult] = deque(maxlen=history_size)

    def add_frame(self, frame: Any, crop: CropResult, timestamp: float) -> None:
        """Buffer a frame and remember its crop."""
        self.crop_history.append(crop)
        self.frames.append((frame, crop, timestamp))

    def _are_crops_similar(
        self, crop1: CropResult, crop2: CropResult, frame_width: float
    ) -> bool:
        return is_crop_similar(crop1, crop2, frame_width, self.similarity_threshold)

    def _most_recent_similar_crop(
        self, crop: CropResult, frame_width: float
    ) -> Optional[CropResult]:
        for hist_crop in reversed(self.crop_history):
            if self._are_crops_similar(crop, hist_crop, frame_width):
                return hist_crop
        return None

    def process_buffer(
        self, current_crop: CropResult, frame_width: float
    ) -> list[EmittedFrame]:
        """
        Decide whether to release the buffered frames.

        Args:
            current_crop: Crop of the most recent frame.
            frame_width: Source frame width, used for similarity tolerance.

        Returns:
            Released frames with the crop to render them with; empty when the
            buffer keeps waiting.
        """
        if not self.frames:
            return []

        first_crop = self.frames[0][1]
        committed: list[EmittedFrame] = []

        if len(self.frames) >= 2 and self._are_crops_similar(
            current_crop, first_crop, frame_width
        ):
            logger.debug(f"committing {len(self.frames)} frames with the first crop")
            committed = self._drain(first_crop)
        elif len(self.frames) >= self.max_buffer_size:
            hist_crop = self._most_recent_similar_crop(current_crop, frame_width)
            if hist_crop is not None:
                logger.debug(
                    f"committing {len(self.frames)} frames with the most recent similar crop"
                )
                committed = self._drain(hist_crop)
            else:
                logger.debug(
                    f"committing {len(self.frames)} frames with their original crops"
                )
                committed = self._drain()

        logger.debug(
            f"committed {len(committed)} frames, buffer size {len(self.frames)}"
        )
        return committed

    def flush(self) -> list[EmittedFrame]:
        """Release everything still buffered with its own crop."""
        return self._drain()

    def _drain(self, crop: Optional[CropResult] = None) -> list[EmittedFrame]:
        released = []
        while self.frames:
            frame, own_crop, _ = self.frames.popleft()
            released.append(
                EmittedFrame(image=frame, crop=crop if crop is not None else own_crop)
            )
        return released
