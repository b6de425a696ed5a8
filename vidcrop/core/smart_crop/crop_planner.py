"""
Per-frame crop computation from detections.

This module turns a frame's detections into the raw crop candidate that the
smoothing engines consume. No temporal logic lives here.
"""

import logging
from typing import Iterable

from vidcrop.core.smart_crop.models import (
    AspectRatio,
    BoundingBox,
    CropArea,
    CropResult,
    DetectedObject,
    ResizeCrop,
    SingleCrop,
    StackedCrop,
)

logger = logging.getLogger(__name__)

# Text boxes below this confidence do not count towards graphic area
MIN_GRAPHIC_CONFIDENCE = 0.80

BALL_OBJECTS = {"ball", "sports ball"}
HEAD_OBJECTS = {"face", "head"}

# Detector class names accepted for a target (COCO calls the ball "sports ball")
TARGET_CLASS_NAMES = {
    "ball": BALL_OBJECTS,
    "sports ball": BALL_OBJECTS,
}


def head_box_from_person(bbox: BoundingBox) -> BoundingBox:
    """Approximate the head of a person box: top-centre, half the box width."""
    head_width = bbox.width * 0.5
    head_height = min(bbox.height, head_width * 1.25)
    return BoundingBox(
        x=bbox.x + (bbox.width - head_width) / 2,
        y=bbox.y,
        width=head_width,
        height=head_height,
    )


def match_target_detections(
    detections: Iterable[DetectedObject],
    object_name: str,
) -> list[DetectedObject]:
    """
    Select the detections that stand for `object_name`.

    Face and head targets fall back to boxes derived from `person`
    detections when the detector reports no face or head class, which is
    the case for COCO-trained models.
    """
    detections = list(detections)
    names = TARGET_CLASS_NAMES.get(object_name, {object_name})
    matched = [det for det in detections if det.name in names]
    if matched or object_name not in HEAD_OBJECTS:
        return matched

    if any(det.name in HEAD_OBJECTS for det in detections):
        return []
    return [
        DetectedObject(
            name=object_name,
            confidence=det.confidence,
            bbox=head_box_from_person(det.bbox),
        )
        for det in detections
        if det.name == "person"
    ]


def predict_current_box(
    three_frames_ago: BoundingBox,
    two_frames_ago: BoundingBox,
    last_frame: BoundingBox,
    frame_width: float,
    frame_height: float,
) -> BoundingBox:
    """
    Extrapolate where a box is now from its last three positions.

    Uses the last velocity plus half the change in velocity. The result keeps
    the last box size and stays inside the frame.
    """
    v1_x = two_frames_ago.x - three_frames_ago.x
    v1_y = two_frames_ago.y - three_frames_ago.y
    v2_x = last_frame.x - two_frames_ago.x
    v2_y = last_frame.y - two_frames_ago.y

    x = last_frame.x + v2_x + 0.5 * (v2_x - v1_x)
    y = last_frame.y + v2_y + 0.5 * (v2_y - v1_y)
    max_x = max(0.0, frame_width - last_frame.width)
    max_y = max(0.0, frame_height - last_frame.height)
    return BoundingBox(
        x=min(max(x, 0.0), max_x),
        y=min(max(y, 0.0), max_y),
        width=last_frame.width,
        height=last_frame.height,
    )


def extract_objects_above_threshold(
    detections: Iterable[DetectedObject],
    object_name: str,
    object_prob_threshold: float,
    object_area_threshold: float,
    frame_width: float,
    frame_height: float,
) -> list[DetectedObject]:
    """
    Keep the detections that are objects of interest.

    A detection qualifies when it matches the target (see
    `match_target_detections`), its confidence reaches the threshold and it
    covers at least `object_area_threshold` of the frame. The area test is
    skipped for balls, which are small by nature.
    """
    frame_area = frame_width * frame_height
    objects = []
    for det in match_target_detections(detections, object_name):
        if det.confidence is None or det.confidence < object_prob_threshold:
            continue
        if object_name not in BALL_OBJECTS:
            if frame_area <= 0 or det.bbox.area / frame_area < object_area_threshold:
                continue
        objects.append(det)
    return objects


def combined_box_area(detections: Iterable[DetectedObject]) -> float:
    """Total area of the confident boxes."""
    return sum(
        det.bbox.area
        for det in detections
        if det.confidence is not None and det.confidence >= MIN_GRAPHIC_CONFIDENCE
    )


def is_graphic_area_above_threshold(
    detections: Iterable[DetectedObject],
    frame_width: float,
    frame_height: float,
    graphic_threshold: float,
) -> bool:
    """
    Check whether text boxes cover enough of the frame to call it a graphic.
    """
    if graphic_threshold <= 0:
        return False

    frame_area = frame_width * frame_height
    if frame_area <= 0:
        return False

    total_area = combined_box_area(detections)
    logger.debug(
        f"graphic area: {total_area:.1f} >= {frame_area * graphic_threshold:.1f}?"
    )
    return total_area >= frame_area * graphic_threshold


def _fit_crop_size(
    frame_width: float, frame_height: float, ratio: float
) -> tuple[float, float]:
    """Largest (width, height) with the given ratio that fits in the frame."""
    crop_height = frame_height
    crop_width = crop_height * ratio
    if crop_width > frame_width:
        crop_width = frame_width
        crop_height = crop_width / ratio
    return crop_width, crop_height


def _centered_area(
    cx: float,
    cy: float,
    width: float,
    height: float,
    frame_width: float,
    frame_height: float,
) -> CropArea:
    area = CropArea(x=cx - width / 2, y=cy - height / 2, width=width, height=height)
    return area.clamp(frame_width, frame_height)


def calculate_crop(
    use_stack_crop: bool,
    is_graphic: bool,
    frame_width: float,
    frame_height: float,
    objects: list[DetectedObject],
    aspect_ratio: AspectRatio = AspectRatio(width=9, height=16),
) -> CropResult:
    """
    Compute the raw crop candidate for one frame.

    Args:
        use_stack_crop: Allow a split-screen crop for two distant subjects.
        is_graphic: The frame is graphic content and should not be cropped.
        frame_width: Source frame width.
        frame_height: Source frame height.
        objects: Objects of interest in the frame.
        aspect_ratio: Output aspect ratio.

    Returns:
        ResizeCrop for graphics, StackedCrop for two subjects that do not fit
        in one crop (when enabled), SingleCrop otherwise.
    """
    if is_graphic:
        return ResizeCrop(
            area=CropArea(x=0, y=0, width=frame_width, height=frame_height)
        )

    crop_width, crop_height = _fit_crop_size(
        frame_width, frame_height, aspect_ratio.ratio
    )

    if not objects:
        return SingleCrop(
            area=_centered_area(
                frame_width / 2,
                frame_height / 2,
                crop_width,
                crop_height,
                frame_width,
                frame_height,
            )
        )

    boxes = [obj.bbox for obj in objects]
    union = BoundingBox.union(boxes)

    if use_stack_crop and len(objects) >= 2 and union.width > crop_width:
        return _stacked_crop(objects, frame_width, frame_height, aspect_ratio)

    return SingleCrop(
        area=_centered_area(
            union.cx, union.cy, crop_width, crop_height, frame_width, frame_height
        )
    )


def _stacked_crop(
    objects: list[DetectedObject],
    frame_width: float,
    frame_height: float,
    aspect_ratio: AspectRatio,
) -> StackedCrop:
    """Split-screen crop of the two most prominent subjects, left one on top."""
    prominent = sorted(
        objects,
        key=lambda o: o.bbox.area * (o.confidence or 0.0),
        reverse=True,
    )[:2]
    prominent.sort(key=lambda o: o.bbox.cx)

    # Each half keeps the output width but only half its height
    half_ratio = aspect_ratio.width / (aspect_ratio.height / 2)
    half_width, half_height = _fit_crop_size(
        frame_width, frame_height / 2, half_ratio
    )

    top, bottom = (
        _centered_area(
            o.bbox.cx, o.bbox.cy, half_width, half_height, frame_width, frame_height
        )
        for o in prominent
    )
    return StackedCrop(top=top, bottom=bottom)
