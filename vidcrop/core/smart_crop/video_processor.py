"""
Main VideoProcessor class that drives detection, smoothing and rendering.

This is the primary entry point for reframing a video file.
"""

import logging
import tempfile
from collections import deque
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol

import cv2
import numpy as np

from vidcrop.core.smart_crop.config import SmartCropConfig
from vidcrop.core.smart_crop.crop_buffer import CropBuffer
from vidcrop.core.smart_crop.crop_planner import (
    BALL_OBJECTS,
    calculate_crop,
    extract_objects_above_threshold,
    is_graphic_area_above_threshold,
    predict_current_box,
)
from vidcrop.core.smart_crop.cut_detector import CutDetector
from vidcrop.core.smart_crop.detector import ObjectDetector, TextRegionDetector
from vidcrop.core.smart_crop.history_smoother import (
    CutDetectorLike,
    HistorySmoothingEngine,
)
from vidcrop.core.smart_crop.models import (
    BoundingBox,
    CropResult,
    DetectedObject,
    EmittedFrame,
    VideoMeta,
)
from vidcrop.core.smart_crop.renderer import FrameRenderer, VideoSink, mux_audio
from vidcrop.core.utils.opencv import iter_frames, open_video

logger = logging.getLogger(__name__)


class Detector(Protocol):
    def detect(self, frame: Any) -> list[DetectedObject]: ...


class FrameSink(Protocol):
    stop_requested: bool

    def write(self, frame: np.ndarray) -> None: ...


class VideoProcessor:
    """
    Reframe a video by following detected subjects.

    Example usage:
        processor = VideoProcessor(SmartCropConfig(target_object="face"))
        meta = processor.process_video("input.mp4", "output.mp4")

    Collaborators (detector, cut detector, renderer) can be injected, which
    keeps the frame loop testable without models or video files.
    """

    def __init__(
        self,
        config: Optional[SmartCropConfig] = None,
        detector: Optional[Detector] = None,
        cut_detector: Optional[CutDetectorLike] = None,
        renderer: Optional[FrameRenderer] = None,
        text_detector: Optional[Detector] = None,
    ):
        if config is None:
            config = SmartCropConfig()

        self.config = config
        self.detector = detector or ObjectDetector(
            model_path=config.model_path, device=config.device
        )
        self.cut_detector = cut_detector or CutDetector(
            config.cut_similarity, config.cut_start
        )
        self.renderer = renderer or FrameRenderer(config.aspect_ratio)
        self.text_detector = text_detector or TextRegionDetector()

        self._ball_boxes: deque[BoundingBox] = deque(maxlen=3)
        self._missed_ball_frames = 0

    def process_video(
        self,
        input_path: str,
        output_path: str,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> VideoMeta:
        """
        Reframe a video file.

        Args:
            input_path: Path to the source video.
            output_path: Path of the reframed video.
            should_stop: Optional callable checked before each frame; return
                True to stop reading.

        Returns:
            VideoMeta describing the source and the frames processed.
        """
        logger.info(f"Processing video: {input_path}")
        cap = open_video(input_path)
        try:
            width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            fps = cap.get(cv2.CAP_PROP_FPS)
            logger.info(f"Video: {width}x{height} @ {fps:.2f}fps")

            with tempfile.TemporaryDirectory() as tmpdir:
                if self.config.keep_audio:
                    video_only_path = str(Path(tmpdir) / "video_only.mp4")
                else:
                    video_only_path = output_path

                with VideoSink(
                    video_only_path,
                    fps,
                    codec=self.config.output_codec,
                    headless=self.config.headless,
                ) as sink:
                    frames_read = self.process_frames(
                        iter_frames(cap), fps, sink, should_stop
                    )
                    frames_written = sink.frames_written

                if self.config.keep_audio and frames_written:
                    mux_audio(video_only_path, input_path, output_path, self.config)
                elif self.config.keep_audio:
                    logger.warning("No frames written, skipping audio mux")
        finally:
            cap.release()

        logger.info(f"Wrote {frames_written}/{frames_read} frames to {output_path}")
        return VideoMeta(
            input_path=input_path,
            output_path=output_path,
            width=max(1, width),
            height=max(1, height),
            fps=max(0.0, fps),
            frames_read=frames_read,
            frames_written=frames_written,
        )

    def process_frames(
        self,
        frames: Iterable[np.ndarray],
        fps: float,
        sink: FrameSink,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> int:
        """
        Run the per-frame loop over an iterable of frames.

        Frames reach the sink in input order, including frames held back by
        the smoothing strategy, which are flushed at the end.

        Returns:
            Number of frames read.
        """
        smooth_duration_frames = self.config.smooth_duration_frames(fps)
        engine: Optional[HistorySmoothingEngine] = None
        buffer: Optional[CropBuffer] = None

        if smooth_duration_frames > 0 and self.config.use_simple_smoothing:
            buffer = CropBuffer(self.config.buffer_seconds, fps)
            logger.info(f"Using crop buffer ({buffer.max_buffer_size} frames)")
        elif smooth_duration_frames > 0:
            engine = HistorySmoothingEngine(
                smooth_duration_frames,
                self.config.smooth_percentage,
                self.cut_detector,
                self.config.selection_min_run_frames,
                self.config.max_transition_frames(fps),
            )
            logger.info(f"Using history smoothing ({smooth_duration_frames} frames)")
        else:
            logger.info("Smoothing disabled")

        self._ball_boxes.clear()
        self._missed_ball_frames = 0
        frames_read = 0
        for frame in frames:
            if sink.stop_requested or (should_stop is not None and should_stop()):
                logger.info("Stopping early at user request")
                break

            frame_width = frame.shape[1]
            latest_crop, object_count = self.compute_latest_crop(frame)

            if engine is not None:
                emitted = engine.process_frame(
                    frame, latest_crop, object_count, frame_width
                )
                logger.debug(
                    f"previous_crop={engine.previous_crop}, "
                    f"pending={engine.pending_frames}, "
                    f"objects={object_count}/{engine.previous_object_count}"
                )
            elif buffer is not None:
                timestamp = frames_read / fps if fps > 0 else 0.0
                buffer.add_frame(frame, latest_crop, timestamp)
                emitted = buffer.process_buffer(latest_crop, frame_width)
            else:
                emitted = [EmittedFrame(image=frame, crop=latest_crop)]

            frames_read += 1
            self._write(emitted, sink)

        if engine is not None:
            self._write(engine.finalize(), sink)
        elif buffer is not None:
            self._write(buffer.flush(), sink)

        return frames_read

    def compute_latest_crop(self, frame: np.ndarray) -> tuple[CropResult, int]:
        """
        Detect subjects in a frame and compute its raw crop.

        Returns:
            (crop, number of objects of interest).
        """
        frame_height, frame_width = frame.shape[:2]
        objects = extract_objects_above_threshold(
            self.detector.detect(frame),
            self.config.target_object.value,
            self.config.object_prob_threshold,
            self.config.object_area_threshold,
            frame_width,
            frame_height,
        )
        objects = self._track_ball(objects, frame_width, frame_height)

        is_graphic = False
        if (not objects and self.config.keep_graphic) or self.config.prioritize_graphic:
            is_graphic = is_graphic_area_above_threshold(
                self.text_detector.detect(frame),
                frame_width,
                frame_height,
                self.config.graphic_threshold,
            )

        latest_crop = calculate_crop(
            self.config.use_stack_crop,
            is_graphic,
            frame_width,
            frame_height,
            objects,
            self.config.aspect_ratio,
        )
        logger.debug(
            f"objects={len(objects)}, is_graphic={is_graphic}, latest_crop={latest_crop}"
        )
        return latest_crop, len(objects)

    def _write(self, emitted: list[EmittedFrame], sink: FrameSink) -> None:
        for item in emitted:
            sink.write(self.renderer.render(item.image, item.crop))

    def _track_ball(
        self,
        objects: list[DetectedObject],
        frame_width: float,
        frame_height: float,
    ) -> list[DetectedObject]:
        """
        Fill short gaps in ball detection by extrapolating its motion.

        Up to `ball_prediction_frames` consecutive misses are replaced by a
        predicted box, once three positions are known.
        """
        target = self.config.target_object.value
        if self.config.ball_prediction_frames <= 0 or target not in BALL_OBJECTS:
            return objects

        if objects:
            self._missed_ball_frames = 0
            best = max(objects, key=lambda o: o.confidence or 0.0)
            self._ball_boxes.append(best.bbox)
            return objects

        self._missed_ball_frames += 1
        if self._missed_ball_frames > self.config.ball_prediction_frames:
            self._ball_boxes.clear()
        if len(self._ball_boxes) < 3:
            return objects

        predicted = predict_current_box(*self._ball_boxes, frame_width, frame_height)
        self._ball_boxes.append(predicted)
        logger.debug(f"ball missed, predicted {predicted}")
        return [DetectedObject(name=target, confidence=None, bbox=predicted)]
