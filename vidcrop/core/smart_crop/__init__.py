"""
Smart Crop - subject-following reframing with crop smoothing.

This module turns per-frame subject detections into a stable crop
sequence and renders landscape video into portrait formats (9:16 by
default). Raw per-frame crops jitter; the smoothing engines hold the
crop until a change persists, skip blips and jump immediately on
scene cuts.

Usage:
    from vidcrop.core.smart_crop import VideoProcessor, SmartCropConfig

    processor = VideoProcessor(SmartCropConfig(target_object="face"))
    meta = processor.process_video("input.mp4", "output_portrait.mp4")

    # The smoothing core can be driven directly, one frame at a time
    engine = HistorySmoothingEngine(
        smooth_duration_frames=30,
        smooth_percentage=7.5,
        cut_detector=CutDetector(),
    )
    for frame, crop, count in frames:
        for emitted in engine.process_frame(frame, crop, count, frame_width):
            render(emitted.image, emitted.crop)
    for emitted in engine.finalize():
        render(emitted.image, emitted.crop)
"""

from vidcrop.core.smart_crop.models import (
    AspectRatio,
    BoundingBox,
    CropArea,
    CropResult,
    DetectedObject,
    EmittedFrame,
    HistoryEntry,
    ResizeCrop,
    SingleCrop,
    StackedCrop,
    VideoMeta,
    crop_result_adapter,
)
from vidcrop.core.smart_crop.config import (
    SmartCropConfig,
    TargetObject,
    FAST_CONFIG,
    STABLE_CONFIG,
    SPORTS_CONFIG,
)
from vidcrop.core.smart_crop.config_factory import get_config_from_env, get_preset_config
from vidcrop.core.smart_crop.similarity import (
    is_crop_class_same,
    is_crop_similar,
    object_count_class,
    resolve_crop_choice,
    select_closest_crop,
)
from vidcrop.core.smart_crop.interpolation import interpolate_crop_results
from vidcrop.core.smart_crop.history import CropHistory
from vidcrop.core.smart_crop.history_smoother import HistorySmoothingEngine
from vidcrop.core.smart_crop.crop_buffer import CropBuffer
from vidcrop.core.smart_crop.cut_detector import CutDetector
from vidcrop.core.smart_crop.crop_planner import calculate_crop
from vidcrop.core.smart_crop.video_processor import VideoProcessor

__all__ = [
    # Main class
    "VideoProcessor",
    # Smoothing
    "HistorySmoothingEngine",
    "CropBuffer",
    "CropHistory",
    "CutDetector",
    "calculate_crop",
    "interpolate_crop_results",
    "is_crop_similar",
    "is_crop_class_same",
    "object_count_class",
    "resolve_crop_choice",
    "select_closest_crop",
    # Configuration
    "SmartCropConfig",
    "TargetObject",
    "FAST_CONFIG",
    "STABLE_CONFIG",
    "SPORTS_CONFIG",
    "get_config_from_env",
    "get_preset_config",
    # Data models
    "AspectRatio",
    "BoundingBox",
    "CropArea",
    "CropResult",
    "SingleCrop",
    "StackedCrop",
    "ResizeCrop",
    "DetectedObject",
    "EmittedFrame",
    "HistoryEntry",
    "VideoMeta",
    "crop_result_adapter",
]
