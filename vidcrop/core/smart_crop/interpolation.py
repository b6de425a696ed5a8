"""
Crop interpolation between two committed crops.
"""

from vidcrop.core.smart_crop.models import CropArea, CropResult, SingleCrop


def interpolate_crop_results(
    start: CropResult,
    destination: CropResult,
    num_frames: int,
) -> list[CropResult]:
    """
    Build a sequence of crops that moves from `start` to `destination`.

    Only the x-coordinate is interpolated; y, width and height are taken from
    `destination` at every step. When either crop is not a SingleCrop, the
    sequence is `num_frames` copies of `destination`.

    Args:
        start: Crop the transition starts from.
        destination: Crop the transition ends on.
        num_frames: Length of the returned sequence.

    Returns:
        List of exactly `num_frames` crops, ending on `destination`.
    """
    if num_frames <= 0:
        return []
    if not (isinstance(start, SingleCrop) and isinstance(destination, SingleCrop)):
        return [destination] * num_frames
    if num_frames == 1:
        return [destination]

    start_area = start.area
    dest_area = destination.area
    step = 1.0 / (num_frames - 1)

    crops: list[CropResult] = []
    for i in range(num_frames):
        t = i * step
        x = start_area.x + t * (dest_area.x - start_area.x)
        crops.append(
            SingleCrop(
                area=CropArea(
                    x=x,
                    y=dest_area.y,
                    width=dest_area.width,
                    height=dest_area.height,
                )
            )
        )
    # Land exactly on the destination despite float rounding
    crops[-1] = destination
    return crops
