"""
Data models for the smart crop pipeline.

All models use Pydantic for serialization and validation.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class AspectRatio(BaseModel):
    """Target aspect ratio for output video."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., ge=1, description="Aspect ratio width component")
    height: int = Field(..., ge=1, description="Aspect ratio height component")

    @property
    def ratio(self) -> float:
        """Returns width/height as float."""
        return self.width / self.height

    def __str__(self) -> str:
        return f"{self.width}:{self.height}"

    @classmethod
    def from_string(cls, s: str) -> "AspectRatio":
        """Parse aspect ratio from string like '9:16' or '9x16'."""
        for sep in [":", "x", "/"]:
            if sep in s:
                parts = s.split(sep)
                if len(parts) == 2:
                    return cls(width=int(parts[0]), height=int(parts[1]))
        raise ValueError(f"Invalid aspect ratio format: {s}")


class CropArea(BaseModel):
    """Crop rectangle in frame pixel coordinates."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="Left edge x-coordinate")
    y: float = Field(..., description="Top edge y-coordinate")
    width: float = Field(..., ge=0, description="Crop width")
    height: float = Field(..., ge=0, description="Crop height")

    @property
    def cx(self) -> float:
        """Center x-coordinate."""
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        """Center y-coordinate."""
        return self.y + self.height / 2

    def is_within_percentage(
        self, other: "CropArea", frame_width: float, percentage: float
    ) -> bool:
        """
        Check whether every edge/size component differs by at most
        `percentage` percent of the frame width.

        The same pixel tolerance is used for all four components.
        """
        tolerance = max(percentage, 0.0) / 100.0 * frame_width
        return (
            abs(self.x - other.x) <= tolerance
            and abs(self.y - other.y) <= tolerance
            and abs(self.width - other.width) <= tolerance
            and abs(self.height - other.height) <= tolerance
        )

    def clamp(self, frame_width: float, frame_height: float) -> "CropArea":
        """Clamp the area so it lies fully inside the frame."""
        width = min(self.width, frame_width)
        height = min(self.height, frame_height)
        x = max(0.0, min(self.x, frame_width - width))
        y = max(0.0, min(self.y, frame_height - height))
        return CropArea(x=x, y=y, width=width, height=height)


class SingleCrop(BaseModel):
    """Crop to one rectangle."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    area: CropArea


class StackedCrop(BaseModel):
    """Two rectangles rendered as top/bottom halves."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["stacked"] = "stacked"
    top: CropArea
    bottom: CropArea


class ResizeCrop(BaseModel):
    """Whole-frame passthrough, used for graphic content."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["resize"] = "resize"
    area: CropArea


CropResult = Annotated[
    Union[SingleCrop, StackedCrop, ResizeCrop], Field(discriminator="kind")
]

crop_result_adapter: TypeAdapter = TypeAdapter(CropResult)


def single(x: float, y: float, width: float, height: float) -> SingleCrop:
    """Shorthand for a SingleCrop."""
    return SingleCrop(area=CropArea(x=x, y=y, width=width, height=height))


class BoundingBox(BaseModel):
    """Bounding box in pixel coordinates."""

    x: float = Field(..., description="Left edge x-coordinate")
    y: float = Field(..., description="Top edge y-coordinate")
    width: float = Field(..., ge=0, description="Box width")
    height: float = Field(..., ge=0, description="Box height")

    @property
    def cx(self) -> float:
        """Center x-coordinate."""
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        """Center y-coordinate."""
        return self.y + self.height / 2

    @property
    def x2(self) -> float:
        """Right edge x-coordinate."""
        return self.x + self.width

    @property
    def y2(self) -> float:
        """Bottom edge y-coordinate."""
        return self.y + self.height

    @property
    def area(self) -> float:
        """Box area in pixels."""
        return self.width * self.height

    @classmethod
    def union(cls, boxes: list["BoundingBox"]) -> Optional["BoundingBox"]:
        """Compute bounding box that contains all input boxes."""
        if not boxes:
            return None
        x = min(b.x for b in boxes)
        y = min(b.y for b in boxes)
        x2 = max(b.x2 for b in boxes)
        y2 = max(b.y2 for b in boxes)
        return cls(x=x, y=y, width=x2 - x, height=y2 - y)


class DetectedObject(BaseModel):
    """A single detection produced by the object detector."""

    name: str = Field(..., description="Class name, e.g. 'face' or 'ball'")
    confidence: Optional[float] = Field(
        None, ge=0, le=1, description="Detection confidence"
    )
    bbox: BoundingBox = Field(..., description="Bounding box in frame coordinates")


class HistoryEntry(BaseModel):
    """A buffered raw frame awaiting a smoothing decision."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    image: Any = Field(..., description="Raw frame, passed through untouched")
    crop: CropResult = Field(..., description="Crop recorded for the frame")
    object_count: int = Field(..., ge=0, description="Objects of interest in the frame")


class EmittedFrame(BaseModel):
    """A frame whose crop has been decided and is ready to render."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    image: Any = Field(..., description="Raw frame")
    crop: CropResult = Field(..., description="Crop to apply when rendering")


class VideoMeta(BaseModel):
    """Metadata about a processed video."""

    input_path: str = Field(..., description="Path to input video")
    output_path: Optional[str] = Field(None, description="Path to output video")
    width: int = Field(..., ge=1, description="Frame width in pixels")
    height: int = Field(..., ge=1, description="Frame height in pixels")
    fps: float = Field(..., ge=0, description="Video frame rate")
    frames_read: int = Field(0, ge=0, description="Frames read from the source")
    frames_written: int = Field(0, ge=0, description="Frames written to the output")
