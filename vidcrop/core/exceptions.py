"""
Smart crop exceptions.

The smoothing engines raise nothing of their own; these wrap failures of
the collaborators around them and are always propagated.
"""


class SmartCropError(Exception):
    """Base exception for all smart crop errors."""
    pass


class VideoOpenError(SmartCropError):
    """Raised when a source video cannot be opened or an output cannot be created."""
    pass


class RenderError(SmartCropError):
    """Raised when cropping or writing a frame fails."""
    pass


class CutDetectionError(SmartCropError):
    """Raised when two frames cannot be compared for a scene cut."""
    pass


class DetectorError(SmartCropError):
    """Raised when object detection fails."""
    pass
