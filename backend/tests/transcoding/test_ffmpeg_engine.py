"""Tests for the FFmpeg subprocess engine.

A small shell script stands in for the ffmpeg binary so the subprocess
handling (exit codes, timeouts, missing output) is exercised for real.
"""

import os
import stat
import sys
from pathlib import Path

import pytest

from app.modules.transcoding.ffmpeg import FFmpegConfig, FFmpegTranscoder
from app.modules.transcoding.profiles import QualityProfile

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")


def fake_ffmpeg(tmp_path: Path, body: str) -> str:
    script = tmp_path / "ffmpeg"
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script)


def make_config(tmp_path: Path) -> FFmpegConfig:
    return FFmpegConfig.for_profile(
        str(tmp_path / "raw.mp4"),
        str(tmp_path / "720p.mp4"),
        QualityProfile("720p", 720, 2500),
    )


# Writes to the last argument, which is the output path.
WRITE_OUTPUT = 'for last; do :; done\nprintf rendition > "$last"'


class TestCommand:
    def test_command_targets_profile(self, tmp_path) -> None:
        config = make_config(tmp_path)
        cmd = FFmpegTranscoder("ffmpeg").build_transcode_command(config)

        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-i") + 1] == config.input_path
        assert cmd[cmd.index("-b:v") + 1] == "2500k"
        assert cmd[cmd.index("-maxrate") + 1] == "3750k"
        assert cmd[cmd.index("-bufsize") + 1] == "5000k"
        assert cmd[cmd.index("-vf") + 1] == "scale=-2:720"
        assert cmd[-1] == config.output_path


class TestTranscode:
    @pytest.mark.asyncio
    async def test_success_reports_output_size(self, tmp_path) -> None:
        config = make_config(tmp_path)
        engine = FFmpegTranscoder(fake_ffmpeg(tmp_path, WRITE_OUTPUT))

        result = await engine.transcode(config, timeout=10)

        assert result.success is True
        assert result.file_size == len(b"rendition")
        assert os.path.isfile(config.output_path)

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_failure_with_stderr(self, tmp_path) -> None:
        engine = FFmpegTranscoder(fake_ffmpeg(tmp_path, 'echo "Invalid data found" >&2\nexit 1'))

        result = await engine.transcode(make_config(tmp_path), timeout=10)

        assert result.success is False
        assert "code 1" in result.error_message
        assert "Invalid data found" in result.error_message

    @pytest.mark.asyncio
    async def test_missing_output_is_failure(self, tmp_path) -> None:
        engine = FFmpegTranscoder(fake_ffmpeg(tmp_path, "exit 0"))

        result = await engine.transcode(make_config(tmp_path), timeout=10)

        assert result.success is False
        assert result.error_message == "ffmpeg produced no output"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path) -> None:
        engine = FFmpegTranscoder(fake_ffmpeg(tmp_path, "exec sleep 30"))

        result = await engine.transcode(make_config(tmp_path), timeout=0.2)

        assert result.success is False
        assert result.timed_out is True

    @pytest.mark.asyncio
    async def test_missing_binary_is_failure(self, tmp_path) -> None:
        engine = FFmpegTranscoder(str(tmp_path / "no-such-ffmpeg"))

        result = await engine.transcode(make_config(tmp_path), timeout=10)

        assert result.success is False
        assert "Could not start ffmpeg" in result.error_message
