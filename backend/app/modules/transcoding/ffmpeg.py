"""FFmpeg transcoding engine.

The engine is a black box: given an input path, a target height and bitrate,
and an output path, it either produces the output file or reports failure.
"""

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from app.modules.transcoding.profiles import QualityProfile

# Keep only the end of FFmpeg's stderr; the useful part is the last lines.
STDERR_TAIL_CHARS = 2000


class TranscodeTaskError(Exception):
    """A single rendition failed to transcode."""

    def __init__(self, profile: str, message: str):
        self.profile = profile
        super().__init__(f"{profile}: {message}")


@dataclass
class FFmpegConfig:
    """Configuration for one FFmpeg transcode."""
    input_path: str
    output_path: str
    target_height: int
    bitrate: str  # FFmpeg notation, e.g. "4000k"
    preset: str = "medium"
    audio_bitrate: str = "128k"
    keyframe_interval: int = 2  # seconds

    @classmethod
    def for_profile(
        cls,
        input_path: str,
        output_path: str,
        profile: QualityProfile,
    ) -> "FFmpegConfig":
        return cls(
            input_path=input_path,
            output_path=output_path,
            target_height=profile.target_height,
            bitrate=profile.ffmpeg_bitrate,
        )


@dataclass
class TranscodeOutput:
    """Result of transcoding operation."""
    success: bool
    output_path: str
    file_size: int = 0
    duration_seconds: float = 0.0
    error_message: Optional[str] = None
    timed_out: bool = False


class TranscodeEngine(Protocol):
    """Anything that can turn one input file into one rendition."""

    async def transcode(
        self,
        config: FFmpegConfig,
        timeout: Optional[float] = None,
    ) -> TranscodeOutput:
        ...


def _bitrate_multiple(bitrate: str, factor: float) -> str:
    value = bitrate.rstrip("kK")
    return f"{int(int(value) * factor)}k"


class FFmpegTranscoder:
    """FFmpeg-based video transcoder run as an asyncio subprocess."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        """Initialize transcoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
        """
        self.ffmpeg_path = ffmpeg_path

    def build_transcode_command(self, config: FFmpegConfig) -> list[str]:
        """Build FFmpeg command for transcoding.

        Width is derived from the source aspect ratio and rounded to an even
        number, which libx264 requires.

        Args:
            config: Transcoding configuration

        Returns:
            FFmpeg command as list of arguments
        """
        return [
            self.ffmpeg_path,
            "-y",  # Overwrite output
            "-nostdin",
            "-i", config.input_path,
            # Video settings
            "-c:v", "libx264",
            "-preset", config.preset,
            "-b:v", config.bitrate,
            "-maxrate", _bitrate_multiple(config.bitrate, 1.5),
            "-bufsize", _bitrate_multiple(config.bitrate, 2),
            "-vf", f"scale=-2:{config.target_height}",
            "-g", str(config.keyframe_interval * 30),  # assumes ~30fps
            # Audio settings
            "-c:a", "aac",
            "-b:a", config.audio_bitrate,
            # Output format
            "-movflags", "+faststart",
            config.output_path,
        ]

    async def transcode(
        self,
        config: FFmpegConfig,
        timeout: Optional[float] = None,
    ) -> TranscodeOutput:
        """Transcode one rendition.

        The subprocess is killed when ``timeout`` elapses. Every failure mode
        (missing binary, non-zero exit, timeout, missing output) is reported
        through the returned ``TranscodeOutput`` rather than raised.

        Args:
            config: Transcoding configuration
            timeout: Seconds before the subprocess is killed

        Returns:
            TranscodeOutput with result
        """
        cmd = self.build_transcode_command(config)
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return TranscodeOutput(
                success=False,
                output_path=config.output_path,
                error_message=f"Could not start ffmpeg: {e}",
            )

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return TranscodeOutput(
                success=False,
                output_path=config.output_path,
                duration_seconds=time.monotonic() - started,
                error_message=f"Timed out after {timeout}s",
                timed_out=True,
            )

        elapsed = time.monotonic() - started

        if process.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:]
            return TranscodeOutput(
                success=False,
                output_path=config.output_path,
                duration_seconds=elapsed,
                error_message=f"ffmpeg exited with code {process.returncode}: {tail}",
            )

        file_size = os.path.getsize(config.output_path) if os.path.exists(config.output_path) else 0
        if file_size == 0:
            return TranscodeOutput(
                success=False,
                output_path=config.output_path,
                duration_seconds=elapsed,
                error_message="ffmpeg produced no output",
            )

        return TranscodeOutput(
            success=True,
            output_path=config.output_path,
            file_size=file_size,
            duration_seconds=elapsed,
        )
