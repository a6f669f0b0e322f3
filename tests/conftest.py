"""
Test Configuration
==================

Pytest fixtures and fakes for Bridgewatch.

Fakes stand in for everything that talks to the outside world:
    - FakeClock: Controllable time source
    - FakeVisionClient: Vision language client (complete + stream)
    - FakeGrabber: Frame grabber with an optional gate to hold a grab open
    - RecordingSink: Persistence sink that keeps what it was given
"""

import asyncio
from typing import List, Optional, Sequence

import cv2
import numpy as np
import pytest

from bridgewatch.config import Settings
from bridgewatch.frames.frame import Frame
from bridgewatch.frames.grabber import FrameGrabError
from bridgewatch.llm import GenerationError, ImageInput
from bridgewatch.models.angle import CameraAngle


START_TIME = 1_700_000_000.0


class FakeClock:
    """Callable clock returning a settable UNIX time."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_frame(
    angle: CameraAngle,
    timestamp: float,
    image: bytes = b"\xff\xd8fake-jpeg",
    media_type: str = "image/jpeg",
) -> Frame:
    return Frame(image=image, timestamp=timestamp, angle=angle, media_type=media_type)


def encode_jpeg(width: int = 32, height: int = 24) -> bytes:
    image = np.full((height, width, 3), 127, dtype=np.uint8)
    ok, encoded = cv2.imencode(".jpg", image)
    assert ok
    return encoded.tobytes()


class FakeVisionClient:
    """
    Stand-in for AnthropicVisionClient.

    Args:
        reply: Text returned by complete()
        chunks: Deltas yielded by stream(); defaults to `reply` in pieces
        error: Exception raised by both calls instead of replying
        gate: If set, calls wait on it before replying
    """

    def __init__(
        self,
        reply: str = "BRIDGE",
        chunks: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.reply = reply
        self.chunks = chunks
        self.error = error
        self.gate = gate
        self.calls: List[dict] = []

    async def complete(
        self,
        system: str,
        images: Sequence[ImageInput],
        prompt: str,
        max_tokens: int,
    ) -> str:
        self.calls.append({
            "mode": "complete",
            "system": system,
            "images": list(images),
            "prompt": prompt,
            "max_tokens": max_tokens,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply

    async def stream(
        self,
        system: str,
        images: Sequence[ImageInput],
        prompt: str,
        max_tokens: int,
    ):
        self.calls.append({
            "mode": "stream",
            "system": system,
            "images": list(images),
            "prompt": prompt,
            "max_tokens": max_tokens,
        })
        chunks = self.chunks if self.chunks is not None else [
            self.reply[i:i + 8] for i in range(0, len(self.reply), 8)
        ]
        for chunk in chunks:
            if self.gate is not None:
                await self.gate.wait()
            yield chunk
        if self.error is not None:
            raise self.error


class FakeGrabber:
    """Frame grabber returning fixed bytes, optionally held open by a gate."""

    def __init__(
        self,
        data: Optional[bytes] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.data = data if data is not None else encode_jpeg()
        self.error = error
        self.gate = gate
        self.calls = 0

    async def grab(self) -> bytes:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.data


class RecordingSink:
    """Persistence sink that records calls, or raises when `fail` is set."""

    configured = True

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.frames: List[Frame] = []
        self.readings: list = []
        self.closed = False

    def save_frame(self, frame: Frame) -> None:
        if self.fail:
            raise RuntimeError("disk full")
        self.frames.append(frame)

    def save_reading(self, reading) -> None:
        if self.fail:
            raise RuntimeError("disk full")
        self.readings.append(reading)

    def close(self) -> None:
        self.closed = True


STRUCTURED_ANSWER = """LESOTHO → SOUTH AFRICA: MODERATE
About a dozen cars are waiting to cross.

SOUTH AFRICA → LESOTHO: LIGHT
Traffic is moving freely.

SUMMARY: Busier heading into South Africa.
ADVICE: Allow an extra 20 minutes if you are leaving Maseru."""


DETECTOR_PAYLOAD = {
    "LS_to_SA": 12,
    "SA_to_LS": 2,
    "total": 14,
    "direction_uncertain": False,
    "breakdown": {
        "LS_to_SA": {"cars": 9, "trucks": 2, "buses": 1},
        "SA_to_LS": {"cars": 2, "trucks": 0, "buses": 0},
    },
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def jpeg_bytes():
    return encode_jpeg()


@pytest.fixture
def detector_payload():
    return dict(DETECTOR_PAYLOAD)


@pytest.fixture
def test_settings():
    """Settings with no external services configured."""
    return Settings.model_validate({
        "camera": {"capture_interval_seconds": 3600, "foreground_refresh_seconds": 30},
        "llm": {"api_key": "test-key", "timeout_seconds": 5},
    })


@pytest.fixture
def grab_error():
    return FrameGrabError("ffmpeg exited with 1")


@pytest.fixture
def generation_error():
    return GenerationError("overloaded")
