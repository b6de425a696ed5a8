"""
Core utility modules for video I/O and FFmpeg operations.
"""

from vidcrop.core.utils.ffmpeg import (
    check_ffmpeg_installed,
    filter_benign_warnings,
    run_ffmpeg,
)

__all__ = ["check_ffmpeg_installed", "filter_benign_warnings", "run_ffmpeg"]
