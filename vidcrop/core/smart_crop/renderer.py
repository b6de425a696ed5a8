"""
Frame rendering and video output.

This module applies decided crops to raw frames, writes the result with
OpenCV, and uses FFmpeg to re-encode and attach the source audio.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from vidcrop.core.exceptions import RenderError, VideoOpenError
from vidcrop.core.smart_crop.config import SmartCropConfig
from vidcrop.core.smart_crop.models import (
    AspectRatio,
    CropArea,
    CropResult,
    ResizeCrop,
    SingleCrop,
    StackedCrop,
)
from vidcrop.core.utils.ffmpeg import run_ffmpeg

logger = logging.getLogger(__name__)

ESCAPE_KEY = 27


def _even(value: float) -> int:
    return max(2, int(value) - int(value) % 2)


class FrameRenderer:
    """
    Apply a CropResult to a frame.

    Output frames share one size: the source height and the target aspect
    ratio, rounded down to even dimensions.
    """

    def __init__(
        self,
        aspect_ratio: AspectRatio = AspectRatio(width=9, height=16),
        blur_sigma: float = 30.0,
    ):
        self.aspect_ratio = aspect_ratio
        self.blur_sigma = blur_sigma

    def output_size(self, frame_width: int, frame_height: int) -> tuple[int, int]:
        """(width, height) of rendered frames for a given source size."""
        out_h = _even(frame_height)
        out_w = _even(round(out_h * self.aspect_ratio.ratio))
        return out_w, out_h

    def render(self, image: np.ndarray, crop: CropResult) -> np.ndarray:
        """
        Crop and resize a frame.

        Raises:
            RenderError: If the crop cannot be applied.
        """
        frame_h, frame_w = image.shape[:2]
        out_w, out_h = self.output_size(frame_w, frame_h)

        try:
            if isinstance(crop, SingleCrop):
                return self._crop_resize(image, crop.area, out_w, out_h)
            if isinstance(crop, StackedCrop):
                top_h = out_h // 2
                top = self._crop_resize(image, crop.top, out_w, top_h)
                bottom = self._crop_resize(image, crop.bottom, out_w, out_h - top_h)
                return np.vstack([top, bottom])
            if isinstance(crop, ResizeCrop):
                return self._letterbox(image, crop.area, out_w, out_h)
        except cv2.error as e:
            raise RenderError(f"Failed to render crop {crop}: {e}") from e

        raise RenderError(f"Unsupported crop type: {type(crop).__name__}")

    def _region(self, image: np.ndarray, area: CropArea) -> np.ndarray:
        frame_h, frame_w = image.shape[:2]
        clamped = area.clamp(frame_w, frame_h)
        x, y = int(round(clamped.x)), int(round(clamped.y))
        w, h = int(round(clamped.width)), int(round(clamped.height))
        region = image[y : y + h, x : x + w]
        if region.size == 0:
            raise RenderError(f"Empty crop region: {area}")
        return region

    def _crop_resize(
        self, image: np.ndarray, area: CropArea, out_w: int, out_h: int
    ) -> np.ndarray:
        region = self._region(image, area)
        return cv2.resize(region, (out_w, out_h), interpolation=cv2.INTER_AREA)

    def _letterbox(
        self, image: np.ndarray, area: CropArea, out_w: int, out_h: int
    ) -> np.ndarray:
        """Fit the whole region into the output over a blurred background."""
        region = self._region(image, area)
        src_h, src_w = region.shape[:2]

        # Background: fill the output and blur
        fill_scale = max(out_w / src_w, out_h / src_h)
        bg_size = (int(np.ceil(src_w * fill_scale)), int(np.ceil(src_h * fill_scale)))
        bg = cv2.resize(region, bg_size)
        bg_y = (bg.shape[0] - out_h) // 2
        bg_x = (bg.shape[1] - out_w) // 2
        canvas = cv2.GaussianBlur(
            bg[bg_y : bg_y + out_h, bg_x : bg_x + out_w], (0, 0), self.blur_sigma
        )

        # Foreground: fit inside the output
        fit_scale = min(out_w / src_w, out_h / src_h)
        fg_w = max(1, int(src_w * fit_scale))
        fg_h = max(1, int(src_h * fit_scale))
        fg = cv2.resize(region, (fg_w, fg_h), interpolation=cv2.INTER_AREA)
        y0 = (out_h - fg_h) // 2
        x0 = (out_w - fg_w) // 2
        canvas[y0 : y0 + fg_h, x0 : x0 + fg_w] = fg
        return canvas


class VideoSink:
    """
    Write rendered frames to a video file, optionally previewing them.

    The writer is opened on the first frame, once the output size is known.
    """

    def __init__(
        self,
        output_path: str,
        fps: float,
        codec: str = "mp4v",
        headless: bool = True,
        window_name: str = "vidcrop",
    ):
        self.output_path = output_path
        self.fps = fps if fps > 0 else 30.0
        self.codec = codec
        self.headless = headless
        self.window_name = window_name
        self.frames_written = 0
        self.stop_requested = False
        self._writer: Optional[cv2.VideoWriter] = None

    def write(self, frame: np.ndarray) -> None:
        """
        Raises:
            VideoOpenError: If the output file cannot be created.
            RenderError: If the frame cannot be written.
        """
        if self._writer is None:
            height, width = frame.shape[:2]
            fourcc = cv2.VideoWriter_fourcc(*self.codec)
            self._writer = cv2.VideoWriter(
                self.output_path, fourcc, self.fps, (width, height)
            )
            if not self._writer.isOpened():
                raise VideoOpenError(f"Failed to create output video: {self.output_path}")

        try:
            self._writer.write(frame)
        except cv2.error as e:
            raise RenderError(f"Failed to write frame: {e}") from e
        self.frames_written += 1

        if not self.headless:
            cv2.imshow(self.window_name, frame)
            if cv2.waitKey(1) & 0xFF == ESCAPE_KEY:
                self.stop_requested = True

    def close(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None
        if not self.headless and self.frames_written:
            cv2.destroyWindow(self.window_name)

    def __enter__(self) -> "VideoSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def mux_audio(
    video_path: str,
    source_path: str,
    output_path: str,
    config: Optional[SmartCropConfig] = None,
) -> None:
    """
    Re-encode the rendered video and attach the source audio track.

    Sources without audio produce a silent output.

    Raises:
        RuntimeError: If FFmpeg fails.
    """
    if config is None:
        config = SmartCropConfig()

    cmd = [
        "ffmpeg",
        "-y",
        "-i", video_path,
        "-i", source_path,
        "-map", "0:v:0",
        "-map", "1:a:0?",
        "-c:v", "libx264",
        "-preset", config.render_preset,
        "-crf", str(config.render_crf),
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-b:a", "128k",
        "-shortest",
        output_path,
    ]
    run_ffmpeg(cmd)
    logger.info(f"Muxed audio into {output_path}")
