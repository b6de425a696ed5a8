"""
FFmpeg helpers with benign-warning filtering.
"""

import logging
import re
import shutil
import subprocess

logger = logging.getLogger(__name__)

# Patterns for known benign warnings that should be filtered
BENIGN_WARNING_PATTERNS = [
    r"\[av1 @ .*\] Your platform doesn't suppport hardware accelerated AV1 decoding",
    r"\[av1 @ .*\] Failed to get pixel format",
    r"\[av1 @ .*\] Missing Sequence Header",
    r"\[.*\] .* does not support hardware acceleration",
    r"\[.*\] .* hardware acceleration disabled",
]


def filter_benign_warnings(stderr: str) -> tuple[str, list[str]]:
    """
    Split FFmpeg/OpenCV stderr into real output and known benign warnings.

    Returns:
        Tuple of (filtered_stderr, filtered_warnings_list).
    """
    kept = []
    dropped = []
    for line in stderr.split("\n"):
        if any(re.search(p, line, re.IGNORECASE) for p in BENIGN_WARNING_PATTERNS):
            dropped.append(line)
        else:
            kept.append(line)
    return "\n".join(kept), dropped


def check_ffmpeg_installed() -> None:
    """
    Raises:
        RuntimeError: If the ffmpeg binary is not on PATH.
    """
    if shutil.which("ffmpeg") is None:
        raise RuntimeError("ffmpeg is not installed or not on PATH")


def run_ffmpeg(
    cmd: list[str],
    log_level: str = "error",
    check: bool = True,
) -> subprocess.CompletedProcess:
    """
    Run an FFmpeg command.

    Args:
        cmd: FFmpeg command as list of arguments, starting with "ffmpeg".
        log_level: FFmpeg log level inserted unless the command sets one.
        check: If True, raise on non-zero exit code.

    Raises:
        RuntimeError: If FFmpeg fails and check=True.
    """
    if "-loglevel" not in cmd:
        insert_pos = 2 if len(cmd) > 1 and cmd[1] == "-y" else 1
        cmd = cmd[:insert_pos] + ["-loglevel", log_level] + cmd[insert_pos:]

    logger.debug(f"Running FFmpeg: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, check=check, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        stderr, _ = filter_benign_warnings(e.stderr or "")
        logger.error(f"FFmpeg failed: {stderr}")
        raise RuntimeError(f"FFmpeg command failed: {stderr}") from e

    if result.stderr:
        result.stderr, warnings = filter_benign_warnings(result.stderr)
        if warnings:
            logger.debug(f"Filtered {len(warnings)} benign FFmpeg warnings")
    return result
