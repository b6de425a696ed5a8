"""
Crop similarity and candidate selection.

Two crops are "the same" when every rectangle component differs by no more
than a percentage of the frame width. Crops of different kinds are never
similar.
"""

import logging
import math

from vidcrop.core.smart_crop.models import (
    CropResult,
    ResizeCrop,
    SingleCrop,
    StackedCrop,
)

logger = logging.getLogger(__name__)


def is_crop_similar(
    a: CropResult,
    b: CropResult,
    frame_width: float,
    tolerance_pct: float,
) -> bool:
    """
    Check whether two crop results are within tolerance of each other.

    Args:
        a: First crop.
        b: Second crop.
        frame_width: Source frame width in pixels.
        tolerance_pct: Tolerance as a percentage of the frame width.

    Returns:
        True for Single/Single or Stacked/Stacked pairs whose rectangles are
        all within tolerance; False for every other pairing.
    """
    if isinstance(a, SingleCrop) and isinstance(b, SingleCrop):
        return a.area.is_within_percentage(b.area, frame_width, tolerance_pct)
    if isinstance(a, StackedCrop) and isinstance(b, StackedCrop):
        return a.top.is_within_percentage(
            b.top, frame_width, tolerance_pct
        ) and a.bottom.is_within_percentage(b.bottom, frame_width, tolerance_pct)
    return False


def object_count_class(count: int) -> int:
    """Bucket an object count into none / one / many."""
    return min(max(count, 0), 2)


def is_crop_class_same(current_count: int, previous_count: int) -> bool:
    """Two object counts are the same class when both are 0, both 1, or both 2+."""
    return object_count_class(current_count) == object_count_class(previous_count)


def _crop_center(crop: CropResult) -> tuple[float, float]:
    if isinstance(crop, StackedCrop):
        areas = [crop.top, crop.bottom]
    else:
        areas = [crop.area]
    cx = sum(a.cx for a in areas) / len(areas)
    cy = sum(a.cy for a in areas) / len(areas)
    return cx, cy


def _center_distance(a: CropResult, b: CropResult) -> float:
    ax, ay = _crop_center(a)
    bx, by = _crop_center(b)
    return math.hypot(ax - bx, ay - by)


def select_closest_crop(
    previous: CropResult,
    change: CropResult,
    latest: CropResult,
) -> CropResult:
    """
    Pick whichever of `previous` and `change` sits closest to `latest`.

    Distance is measured between crop centers. Ties go to `previous` so the
    output does not move without reason.
    """
    previous_distance = _center_distance(previous, latest)
    change_distance = _center_distance(change, latest)
    if change_distance < previous_distance:
        return change
    return previous


def resolve_crop_choice(
    previous: CropResult,
    change: CropResult,
    latest: CropResult,
) -> CropResult:
    """
    Choose between the committed crop and a proposed change.

    Collapsing to a single subject is always accepted, and splitting a
    single-subject framing is always refused. Everything else falls back to
    the closest-to-latest rule.
    """
    if isinstance(change, SingleCrop) and isinstance(
        previous, (StackedCrop, ResizeCrop)
    ):
        return change
    if isinstance(previous, SingleCrop) and isinstance(
        change, (StackedCrop, ResizeCrop)
    ):
        return previous
    return select_closest_crop(previous, change, latest)

