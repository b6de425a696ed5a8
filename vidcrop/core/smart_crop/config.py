"""
Configuration for the smart crop pipeline.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from vidcrop.core.smart_crop.models import AspectRatio


class TargetObject(str, Enum):
    """Object classes the detector can follow."""

    FACE = "face"
    HEAD = "head"
    PERSON = "person"
    BALL = "ball"
    SPORTS_BALL = "sports ball"
    FRISBEE = "frisbee"
    CAR = "car"
    TRUCK = "truck"
    BOAT = "boat"


class SmartCropConfig(BaseModel):
    """Configuration for the crop smoothing pipeline."""

    # Detection
    target_object: TargetObject = Field(
        default=TargetObject.FACE, description="Object class to follow"
    )
    object_prob_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for an object of interest",
    )
    object_area_threshold: float = Field(
        default=0.0025,
        ge=0.0,
        le=1.0,
        description="Minimum object area as fraction of frame area (ignored for balls)",
    )
    model_path: str = Field(
        default="yolo11s.pt",
        description="Detector weights passed to Ultralytics (face/head fall back to COCO person boxes)",
    )
    device: str = Field(default="cpu", description="Inference device")
    ball_prediction_frames: int = Field(
        default=0,
        ge=0,
        description="Frames a missed ball is extrapolated from its recent motion (0 = off)",
    )

    # Smoothing
    smooth_percentage: float = Field(
        default=7.5,
        description="Crop similarity tolerance as percentage of frame width",
    )
    smooth_duration: float = Field(
        default=1.0,
        description="Minimum run length in seconds before accepting a crop change",
    )
    selection_min_run_frames: int = Field(
        default=8,
        ge=0,
        description="Pending runs shorter than this resolve to the committed crop",
    )
    max_transition_seconds: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Cap on the eased transition to a new crop (None = whole pending run)",
    )
    use_simple_smoothing: bool = Field(
        default=False,
        description="Use the time-windowed crop buffer instead of history smoothing",
    )
    buffer_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Window length of the time-windowed crop buffer",
    )

    # Cut detection
    cut_similarity: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Structural similarity below which a frame pair is a cut",
    )
    cut_start: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Histogram correlation at or above which frames share a shot",
    )

    # Layout
    aspect_ratio: AspectRatio = Field(
        default=AspectRatio(width=9, height=16), description="Output aspect ratio"
    )
    use_stack_crop: bool = Field(
        default=False, description="Allow split-screen crops for two subjects"
    )
    keep_graphic: bool = Field(
        default=False,
        description="Check frames without subjects for graphic (text-heavy) content",
    )
    prioritize_graphic: bool = Field(
        default=False,
        description="Check every frame for graphic content and keep it uncropped",
    )
    graphic_threshold: float = Field(
        default=0.009,
        description="Fraction of frame area covered by text boxes to count as graphic",
    )

    # Output
    headless: bool = Field(default=True, description="Do not open a preview window")
    output_codec: str = Field(default="mp4v", description="FourCC for cv2.VideoWriter")
    keep_audio: bool = Field(
        default=True, description="Copy the source audio track into the output"
    )
    render_preset: str = Field(
        default="veryfast", description="FFmpeg x264 preset for the final mux"
    )
    render_crf: int = Field(
        default=20,
        ge=0,
        le=51,
        description="FFmpeg CRF quality (lower = better quality)",
    )

    def smooth_duration_frames(self, fps: float) -> int:
        """Convert the smoothing duration to a frame count (0 disables smoothing)."""
        if self.smooth_duration <= 0 or fps <= 0:
            return 0
        return int(round(self.smooth_duration * fps))

    def max_transition_frames(self, fps: float) -> Optional[int]:
        if self.max_transition_seconds is None:
            return None
        return int(round(self.max_transition_seconds * max(0.0, fps)))


# Default configurations for common use cases
FAST_CONFIG = SmartCropConfig(
    smooth_duration=0.5,
    selection_min_run_frames=4,
)

STABLE_CONFIG = SmartCropConfig(
    smooth_percentage=10.0,
    smooth_duration=1.5,
)

SPORTS_CONFIG = SmartCropConfig(
    target_object=TargetObject.BALL,
    object_prob_threshold=0.4,
    smooth_percentage=5.0,
    smooth_duration=0.5,
    selection_min_run_frames=4,
    ball_prediction_frames=5,
)
