"""
Frame Grabber
=============

Acquires one still from the public camera stream.

The grab runs FFmpeg as a child process that reads the stream locator
and writes a single JPEG to stdout. The process is hard-bounded by a
timeout and killed when it overruns.

Design Rules:
    - One grab = one short-lived process, nothing kept open
    - Timeout kills the process; a half-written image is discarded
    - Failures raise FrameGrabError; retrying is the scheduler's job
"""

import asyncio
import logging
from typing import List, Protocol


logger = logging.getLogger(__name__)


class FrameGrabError(Exception):
    """Raised when a still could not be acquired."""
    pass


class FrameGrabTimeout(FrameGrabError):
    """Raised when a grab exceeded its hard timeout."""
    pass


class FrameGrabber(Protocol):
    """
    Protocol for frame acquisition backends.

    Implementations return encoded image bytes for "now" or raise
    FrameGrabError.
    """

    async def grab(self) -> bytes:
        ...


class FFmpegFrameGrabber:
    """
    Grab a single JPEG from a stream URL via FFmpeg.

    Attributes:
        stream_url: Camera stream locator (HLS/RTSP/HTTP)
        ffmpeg_bin: FFmpeg executable
        timeout: Hard timeout per grab in seconds
    """

    def __init__(
        self,
        stream_url: str,
        ffmpeg_bin: str = "ffmpeg",
        timeout: float = 25.0,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.stream_url = stream_url
        self.ffmpeg_bin = ffmpeg_bin
        self.timeout = timeout

    def build_command(self) -> List[str]:
        return [
            self.ffmpeg_bin,
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-i", self.stream_url,
            "-frames:v", "1",
            "-f", "image2pipe",
            "-vcodec", "mjpeg",
            "pipe:1",
        ]

    async def grab(self) -> bytes:
        """
        Grab one frame.

        Returns:
            JPEG bytes

        Raises:
            FrameGrabTimeout: If FFmpeg did not finish within `timeout`
            FrameGrabError: If FFmpeg is missing, failed, or wrote nothing
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_command(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise FrameGrabError(f"FFmpeg binary not found: {self.ffmpeg_bin}")
        except OSError as e:
            raise FrameGrabError(f"FFmpeg could not be started: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise FrameGrabTimeout(f"Frame grab timed out after {self.timeout:.0f}s")

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[-300:]
            raise FrameGrabError(f"FFmpeg exited with {process.returncode}: {detail}")

        if not stdout:
            raise FrameGrabError("FFmpeg produced no image data")

        return stdout
