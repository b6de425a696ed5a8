"""
Tests for FFmpeg/OpenCV helpers, audio muxing and logging setup.

Run with: pytest tests/test_utils.py -v
"""

import copy
import logging
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from vidcrop.config import LOGGING_CONFIG, build_logging_config, configure_logging
from vidcrop.core.exceptions import VideoOpenError
from vidcrop.core.smart_crop.cli import main
from vidcrop.core.smart_crop.config import SmartCropConfig
from vidcrop.core.smart_crop.renderer import mux_audio
from vidcrop.core.utils.ffmpeg import (
    check_ffmpeg_installed,
    filter_benign_warnings,
    run_ffmpeg,
)
from vidcrop.core.utils.opencv import iter_frames, open_video


class TestFilterBenignWarnings:
    def test_splits_known_warnings(self):
        stderr = "\n".join([
            "[av1 @ 0x1234] Failed to get pixel format",
            "real problem",
        ])
        filtered, dropped = filter_benign_warnings(stderr)
        assert filtered == "real problem"
        assert len(dropped) == 1


class TestRunFfmpeg:
    def test_inserts_log_level_after_overwrite_flag(self):
        with patch("vidcrop.core.utils.ffmpeg.subprocess.run") as run:
            run.return_value = subprocess.CompletedProcess([], 0, "", "")
            run_ffmpeg(["ffmpeg", "-y", "-i", "in.mp4", "out.mp4"])
        cmd = run.call_args.args[0]
        assert cmd[:4] == ["ffmpeg", "-y", "-loglevel", "error"]

    def test_failure_raises_runtime_error(self):
        error = subprocess.CalledProcessError(1, ["ffmpeg"], stderr="bad codec")
        with patch("vidcrop.core.utils.ffmpeg.subprocess.run", side_effect=error):
            with pytest.raises(RuntimeError, match="bad codec"):
                run_ffmpeg(["ffmpeg", "-i", "in.mp4", "out.mp4"])

    def test_check_ffmpeg_installed(self):
        with patch("vidcrop.core.utils.ffmpeg.shutil.which", return_value=None):
            with pytest.raises(RuntimeError):
                check_ffmpeg_installed()


class TestMuxAudio:
    def test_command_maps_optional_source_audio(self):
        config = SmartCropConfig(render_preset="fast", render_crf=18)
        with patch("vidcrop.core.smart_crop.renderer.run_ffmpeg") as run:
            mux_audio("video.mp4", "source.mp4", "out.mp4", config)
        cmd = run.call_args.args[0]
        assert cmd[-1] == "out.mp4"
        assert "1:a:0?" in cmd
        assert cmd[cmd.index("-preset") + 1] == "fast"
        assert cmd[cmd.index("-crf") + 1] == "18"


class TestOpenCvHelpers:
    def test_open_video_raises_for_unreadable_file(self, tmp_path):
        with pytest.raises(VideoOpenError):
            open_video(str(tmp_path / "missing.mp4"))

    def test_iter_frames_stops_at_end(self):
        cap = MagicMock()
        cap.read.side_effect = [(True, "f0"), (True, "f1"), (False, None)]
        assert list(iter_frames(cap)) == ["f0", "f1"]


@pytest.fixture
def restore_vidcrop_logger():
    logger = logging.getLogger("vidcrop")
    root = logging.getLogger()
    handlers = list(logger.handlers)
    root_handlers = list(root.handlers)
    level, propagate = logger.level, logger.propagate
    root_level = root.level
    yield
    root.handlers = root_handlers
    root.setLevel(root_level)
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestLoggingConfig:
    def test_configure_logging_creates_log_dir(self, tmp_path, restore_vidcrop_logger):
        config = copy.deepcopy(LOGGING_CONFIG)
        log_file = tmp_path / "logs" / "vidcrop.log"
        config["handlers"]["file"]["filename"] = str(log_file)

        logger = configure_logging(config)
        logger.info("hello")

        assert logger.name == "vidcrop"
        assert log_file.parent.is_dir()
        assert len(logger.handlers) == 2

    def test_cli_log_file_receives_errors(self, tmp_path, restore_vidcrop_logger):
        source = tmp_path / "clip.mp4"
        source.write_bytes(b"")
        log_file = tmp_path / "logs" / "run.log"
        with patch("vidcrop.core.smart_crop.cli.VideoProcessor") as processor_cls:
            processor_cls.return_value.process_video.side_effect = RuntimeError("boom")
            code = main([
                "--input", str(source),
                "--no-audio",
                "--log-file", str(log_file),
            ])

        assert code == 1
        assert "boom" in log_file.read_text()

    def test_build_logging_config_uses_given_file_and_level(self):
        config = build_logging_config("/tmp/x.log", "DEBUG")
        assert config["handlers"]["file"]["filename"] == "/tmp/x.log"
        assert config["loggers"]["vidcrop"]["level"] == "DEBUG"
        assert LOGGING_CONFIG["handlers"]["file"]["filename"] != "/tmp/x.log"
