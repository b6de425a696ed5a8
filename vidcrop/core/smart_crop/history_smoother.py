"""
History-based crop smoothing.

The engine sits between the detector and the renderer. It holds frames
whose crop has diverged from the committed crop until it can tell a
detector blip from a durable change, then releases them with either the
old crop or an interpolated transition to the new one.

States (implicit in `previous_crop` and the history queue):
    FIRST FRAME    - nothing committed yet; the first crop is adopted as is.
    STABLE         - history empty, following the committed crop.
    PENDING CHANGE - history non-empty, collecting evidence for a new crop.

Every commit drains the history completely, so STABLE is re-entered after
each decision.
"""

import logging
from typing import Any, Optional, Protocol

from vidcrop.core.smart_crop.history import CropHistory
from vidcrop.core.smart_crop.interpolation import interpolate_crop_results
from vidcrop.core.smart_crop.models import CropResult, EmittedFrame
from vidcrop.core.smart_crop.similarity import (
    is_crop_class_same,
    is_crop_similar,
    resolve_crop_choice,
)

logger = logging.getLogger(__name__)


class CutDetectorLike(Protocol):
    """Anything that can tell whether two frames straddle a scene cut."""

    def is_cut(self, previous_frame: Any, current_frame: Any) -> bool: ...


class HistorySmoothingEngine:
    """
    Per-frame crop smoothing state machine.

    Call `process_frame` once per input frame and render the returned frames
    in order, then call `finalize` at end of stream. Together they emit every
    input frame exactly once, in input order.
    """

    def __init__(
        self,
        smooth_duration_frames: int,
        smooth_percentage: float,
        cut_detector: CutDetectorLike,
        selection_min_run_frames: int = 0,
        max_transition_frames: Optional[int] = None,
    ):
        """
        Initialize the engine.

        Args:
            smooth_duration_frames: Frames a change must persist before it is
                accepted. 0 disables smoothing.
            smooth_percentage: Similarity tolerance, percent of frame width.
            cut_detector: Scene cut test between consecutive frames.
            selection_min_run_frames: Forced resolutions (cut, unstable
                change) of runs shorter than this keep the committed crop.
                0 always runs crop selection.
            max_transition_frames: Cap on the interpolated transition when
                pending frames are released. Frames past the cap get the
                chosen crop. None eases over the whole pending run.
        """
        self.smooth_duration_frames = max(0, int(smooth_duration_frames))
        self.smooth_percentage = max(0.0, smooth_percentage)
        self.cut_detector = cut_detector
        self.selection_min_run_frames = selection_min_run_frames
        self.max_transition_frames = max_transition_frames

        self._previous_crop: Optional[CropResult] = None
        self._previous_object_count = 0
        self._last_image: Any = None
        self._history = CropHistory()

    @property
    def previous_crop(self) -> Optional[CropResult]:
        """Last committed crop, None until the first frame."""
        return self._previous_crop

    @property
    def previous_object_count(self) -> int:
        return self._previous_object_count

    @property
    def pending_frames(self) -> int:
        """Number of frames waiting on a decision."""
        return len(self._history)

    def process_frame(
        self,
        image: Any,
        latest_crop: CropResult,
        object_count: int,
        frame_width: float,
    ) -> list[EmittedFrame]:
        """
        Advance the state machine by one frame.

        Args:
            image: Raw frame.
            latest_crop: Crop computed from this frame's detections.
            object_count: Number of objects of interest in this frame.
            frame_width: Source frame width, used for similarity tolerance.

        Returns:
            Frames ready to render, oldest first. Empty while a change is
            pending.
        """
        if self.smooth_duration_frames == 0:
            self._previous_crop = latest_crop
            self._previous_object_count = object_count
            self._last_image = image
            return [EmittedFrame(image=image, crop=latest_crop)]

        emitted: list[EmittedFrame] = []
        committed: Optional[CropResult]
        committed_count = object_count
        previous = self._previous_crop

        if previous is None:
            logger.debug(f"first frame, adopting {latest_crop}")
            committed = latest_crop
        elif self._is_cut(image):
            logger.debug(f"cut detected, {len(self._history)} pending frames")
            if not self._history.is_empty():
                change_crop = self._history.peek_front().crop
                self._drain_with_interpolation(
                    change_crop, latest_crop, True, emitted
                )
            committed = latest_crop
        elif is_crop_class_same(
            object_count, self._previous_object_count
        ) and is_crop_similar(
            latest_crop, previous, frame_width, self.smooth_percentage
        ):
            if not self._history.is_empty():
                logger.debug(
                    f"crop back within tolerance, discarding {len(self._history)} pending frames"
                )
            for entry in self._history.drain():
                emitted.append(EmittedFrame(image=entry.image, crop=previous))
            committed = previous
            committed_count = self._previous_object_count
        else:
            committed = self._handle_change(
                image, latest_crop, object_count, frame_width, emitted
            )

        self._last_image = image
        if committed is not None:
            self._previous_crop = committed
            self._previous_object_count = committed_count
            emitted.append(EmittedFrame(image=image, crop=committed))
        return emitted

    def finalize(self) -> list[EmittedFrame]:
        """
        Release any frames still pending at end of stream.

        Pending frames keep the last committed crop; no interpolation.
        """
        if self._history.is_empty():
            return []
        logger.debug(f"finalizing, {len(self._history)} frames remaining in history")
        return [
            EmittedFrame(image=entry.image, crop=self._previous_crop)
            for entry in self._history.drain()
        ]

    def _is_cut(self, image: Any) -> bool:
        if self._last_image is None:
            return True
        return self.cut_detector.is_cut(self._last_image, image)

    def _handle_change(
        self,
        image: Any,
        latest_crop: CropResult,
        object_count: int,
        frame_width: float,
        emitted: list[EmittedFrame],
    ) -> Optional[CropResult]:
        """
        Collect evidence for a crop change, or resolve it.

        Returns the crop to commit for the current frame, or None when the
        frame was buffered instead.
        """
        proposer = self._history.peek_front()
        if proposer is None:
            logger.debug(f"possible crop change, buffering {latest_crop}")
            self._history.add(latest_crop, image, object_count)
            return None

        matches_proposer = is_crop_similar(
            latest_crop, proposer.crop, frame_width, self.smooth_percentage
        ) and is_crop_class_same(object_count, proposer.object_count)
        logger.debug(
            f"change crop {proposer.crop} (objects={proposer.object_count}), "
            f"latest matches: {matches_proposer}"
        )

        if not matches_proposer:
            # The proposed change itself is unstable: resolve now.
            return self._drain_with_interpolation(
                proposer.crop, latest_crop, True, emitted
            )

        if len(self._history) >= self.smooth_duration_frames:
            logger.debug(f"crop change confirmed after {len(self._history)} frames")
            return self._drain_with_interpolation(
                proposer.crop, latest_crop, False, emitted
            )

        self._history.add(proposer.crop, image, proposer.object_count)
        return None

    def _drain_with_interpolation(
        self,
        change_crop: CropResult,
        latest_crop: CropResult,
        forced: bool,
        emitted: list[EmittedFrame],
    ) -> CropResult:
        """
        Drain the history, easing from the committed crop to the chosen one.

        Forced resolutions choose between the committed crop and the change
        crop; a confirmed change commits the change crop as is.

        Returns the chosen crop.
        """
        previous = self._previous_crop
        run_length = len(self._history)

        if not forced:
            crop_to_use = change_crop
        elif run_length < self.selection_min_run_frames:
            crop_to_use = previous
        else:
            crop_to_use = resolve_crop_choice(previous, change_crop, latest_crop)

        transition_length = run_length
        if self.max_transition_frames is not None:
            transition_length = min(run_length, max(0, self.max_transition_frames))
        interpolated = interpolate_crop_results(
            previous, crop_to_use, transition_length
        )
        for index, entry in enumerate(self._history.drain()):
            crop = interpolated[index] if index < len(interpolated) else crop_to_use
            emitted.append(EmittedFrame(image=entry.image, crop=crop))

        logger.debug(f"resolved {run_length} pending frames to {crop_to_use}")
        return crop_to_use
