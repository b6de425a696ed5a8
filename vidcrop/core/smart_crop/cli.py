#!/usr/bin/env python3
"""
CLI interface for the smart crop pipeline.

Usage:
    vidcrop --input video.mp4 --output portrait.mp4 --target face

    # Or using Python module:
    python -m vidcrop.core.smart_crop.cli --input video.mp4
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from vidcrop.config import LOG_LEVEL, build_logging_config, configure_logging
from vidcrop.core.smart_crop.config import TargetObject
from vidcrop.core.smart_crop.config_factory import PRESETS, get_preset_config
from vidcrop.core.smart_crop.models import AspectRatio
from vidcrop.core.smart_crop.video_processor import VideoProcessor
from vidcrop.core.utils.ffmpeg import check_ffmpeg_installed


def setup_logging(verbose: bool = False, json_logs: bool = False):
    """Configure logging for CLI usage."""
    level = logging.DEBUG if verbose else logging.INFO

    if json_logs:
        # JSON format for integration with other tools
        format_str = json.dumps({
            "time": "%(asctime)s",
            "level": "%(levelname)s",
            "module": "%(name)s",
            "message": "%(message)s",
        })
    else:
        format_str = "%(asctime)s [%(levelname)s] %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_aspect_ratio(s: str) -> AspectRatio:
    """Parse aspect ratio from string like '9:16' or '9x16'."""
    try:
        return AspectRatio.from_string(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vidcrop",
        description="Reframe landscape video to portrait by following detected subjects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic usage - follow faces, 9:16 output
  %(prog)s --input video.mp4

  # Follow the ball with the sports preset
  %(prog)s --input match.mp4 --preset sports

  # Longer confirmation window and wider tolerance
  %(prog)s --input video.mp4 --smooth-duration 2 --smooth-percentage 10

  # Use the simple time-windowed buffer
  %(prog)s --input video.mp4 --simple-smoothing --buffer-seconds 0.5
        """,
    )

    # Input/output
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Path to input video file",
    )
    parser.add_argument(
        "--output", "-o",
        help="Path to output video file (default: <input>_reframed.mp4)",
    )
    parser.add_argument(
        "--aspect", "-a",
        type=parse_aspect_ratio,
        help="Target aspect ratio (default: 9:16)",
    )
    parser.add_argument(
        "--no-audio",
        action="store_true",
        help="Do not copy the source audio track",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Show rendered frames while processing (Esc stops)",
    )

    # Presets and configuration
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="default",
        help="Configuration preset (default: default)",
    )
    parser.add_argument(
        "--target",
        choices=[t.value for t in TargetObject],
        help="Object class to follow (default: face)",
    )
    parser.add_argument(
        "--object-prob",
        type=float,
        help="Minimum object confidence (default: 0.7)",
    )
    parser.add_argument(
        "--object-area",
        type=float,
        help="Minimum object area as fraction of the frame (default: 0.0025)",
    )
    parser.add_argument(
        "--model",
        help="Detector weights (default: yolo11s.pt)",
    )
    parser.add_argument(
        "--device",
        help="Inference device (default: cpu)",
    )
    parser.add_argument(
        "--smooth-percentage",
        type=float,
        help="Crop similarity tolerance in percent of frame width (default: 7.5)",
    )
    parser.add_argument(
        "--smooth-duration",
        type=float,
        help="Seconds a new crop must persist before it is accepted; 0 disables smoothing (default: 1.0)",
    )
    parser.add_argument(
        "--simple-smoothing",
        action="store_true",
        help="Use the time-windowed crop buffer",
    )
    parser.add_argument(
        "--buffer-seconds",
        type=float,
        help="Window length of the crop buffer (default: 1.0)",
    )
    parser.add_argument(
        "--cut-similarity",
        type=float,
        help="Structural similarity below which frames are a cut (default: 0.4)",
    )
    parser.add_argument(
        "--cut-start",
        type=float,
        help="Histogram correlation at or above which frames share a shot (default: 0.8)",
    )
    parser.add_argument(
        "--stack",
        action="store_true",
        help="Allow split-screen crops for two subjects",
    )
    parser.add_argument(
        "--keep-graphic",
        action="store_true",
        help="Keep text-heavy frames without subjects uncropped",
    )
    parser.add_argument(
        "--prioritize-graphic",
        action="store_true",
        help="Keep text-heavy frames uncropped even when subjects are present",
    )
    parser.add_argument(
        "--crf",
        type=int,
        help="FFmpeg CRF quality (0-51, lower=better, default: 20)",
    )
    parser.add_argument(
        "--preset-encode",
        help="FFmpeg encoding preset (default: veryfast)",
    )

    # Logging
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress all output except errors",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this rotating log file (ignored with --json-logs/--quiet)",
    )
    return parser


def main(args: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parsed = build_parser().parse_args(args)

    # Setup logging
    if parsed.quiet:
        logging.basicConfig(level=logging.ERROR)
    elif parsed.log_file and not parsed.json_logs:
        level = "DEBUG" if parsed.verbose else LOG_LEVEL
        configure_logging(build_logging_config(parsed.log_file, level))
    else:
        setup_logging(parsed.verbose, parsed.json_logs)

    logger = logging.getLogger("vidcrop.cli")

    try:
        # Validate input
        input_path = Path(parsed.input)
        if not input_path.exists():
            logger.error(f"Input file not found: {input_path}")
            return 1

        # Build configuration
        config = get_preset_config(parsed.preset)

        # Override with CLI options
        if parsed.aspect is not None:
            config.aspect_ratio = parsed.aspect
        if parsed.target is not None:
            config.target_object = TargetObject(parsed.target)
        if parsed.object_prob is not None:
            config.object_prob_threshold = parsed.object_prob
        if parsed.object_area is not None:
            config.object_area_threshold = parsed.object_area
        if parsed.model is not None:
            config.model_path = parsed.model
        if parsed.device is not None:
            config.device = parsed.device
        if parsed.smooth_percentage is not None:
            config.smooth_percentage = parsed.smooth_percentage
        if parsed.smooth_duration is not None:
            config.smooth_duration = parsed.smooth_duration
        if parsed.simple_smoothing:
            config.use_simple_smoothing = True
        if parsed.buffer_seconds is not None:
            config.buffer_seconds = parsed.buffer_seconds
        if parsed.cut_similarity is not None:
            config.cut_similarity = parsed.cut_similarity
        if parsed.cut_start is not None:
            config.cut_start = parsed.cut_start
        if parsed.stack:
            config.use_stack_crop = True
        if parsed.keep_graphic:
            config.keep_graphic = True
        if parsed.prioritize_graphic:
            config.prioritize_graphic = True
        if parsed.crf is not None:
            config.render_crf = parsed.crf
        if parsed.preset_encode is not None:
            config.render_preset = parsed.preset_encode
        if parsed.no_audio:
            config.keep_audio = False
        if parsed.preview:
            config.headless = False

        if config.keep_audio:
            check_ffmpeg_installed()

        # Determine output path
        output_path = parsed.output
        if output_path is None:
            output_path = str(input_path.parent / f"{input_path.stem}_reframed.mp4")

        processor = VideoProcessor(config=config)
        meta = processor.process_video(str(input_path), output_path)

        if not parsed.quiet:
            print(f"\nOutput file: {meta.output_path}")
            print(f"  frames: {meta.frames_written}/{meta.frames_read}")

        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Error: {e}")
        if parsed.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
