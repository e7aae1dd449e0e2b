"""Pytest configuration for door sensor tests."""
import asyncio
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Picamera2 only installs on Raspberry Pi OS
mock_picamera2_module = MagicMock()
sys.modules['picamera2'] = mock_picamera2_module

mock_libcamera_module = MagicMock()
mock_libcamera_module.controls = MagicMock()
mock_libcamera_module.Transform = MagicMock()
sys.modules['libcamera'] = mock_libcamera_module

from door_sensor.core.clock import Clock
from door_sensor.core.config import CaptureConfig, DisplayConfig
from door_sensor.core.events import DoorState, PresenceResult

START = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock(Clock):
    """Clock whose current instant is set by the test."""

    def __init__(self, current: datetime = START, tz_name: str = "UTC"):
        super().__init__(DisplayConfig(timezone=tz_name))
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current


class FakeDoorSwitch:
    """Returns scripted pin levels; an Exception instance in the script is raised instead."""

    def __init__(self, levels):
        self.levels = list(levels)
        self.reads = 0

    def read(self) -> DoorState:
        level = self.levels[min(self.reads, len(self.levels) - 1)]
        self.reads += 1
        if isinstance(level, Exception):
            raise level
        return DoorState.from_level(level)


class FakePresenceProbe:
    def __init__(self, result: PresenceResult = PresenceResult.ABSENT, delay: float = 0.0, error: Exception | None = None):
        self.result = result
        self.delay = delay
        self.error = error
        self.calls = 0

    async def check(self, target: str | None = None) -> PresenceResult:
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class ScriptedPresenceProbe:
    """Answers each call with the next ``(result, delay)`` pair from the script."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0

    async def check(self, target: str | None = None) -> PresenceResult:
        result, delay = self.script[self.calls]
        self.calls += 1
        await asyncio.sleep(delay)
        return result


class FakeEventLog:
    def __init__(self, error: Exception | None = None, latest=None):
        self.records = []
        self.error = error
        self.latest = latest

    async def append(self, record) -> None:
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        self.records.append(record)

    async def latest_event_time(self):
        return self.latest


class FakeNotifier:
    def __init__(self, error: Exception | None = None):
        self.sent = []
        self.error = error

    async def send(self, title: str, body: str) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append((title, body))
        return True


class FakeCamera:
    """Returns JPEG-like bytes; indexes listed in ``failures`` return None instead."""

    def __init__(self, failures: set[int] | None = None, raise_error: bool = False):
        self.calls = 0
        self.failures = failures or set()
        self.raise_error = raise_error

    def capture_image_bytes(self, name: str = "main", quality: int | None = None) -> bytes | None:
        self.calls += 1
        if self.raise_error:
            raise RuntimeError("camera unplugged")
        if self.calls in self.failures:
            return None
        return b"\xff\xd8frame" + str(self.calls).encode()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_camera():
    return FakeCamera()


@pytest.fixture
def capture_config(tmp_path):
    """Fast cadence so sessions finish within a test: 5 frames, 1/32 s apart."""
    return CaptureConfig(
        output_dir=str(tmp_path / "captures"),
        total_duration=0.15625,
        frame_delay=0.03125,
    )


@pytest.fixture
def long_capture_config(tmp_path):
    """A session that keeps running for the whole test: 64 frames, 1/64 s apart."""
    return CaptureConfig(output_dir=str(tmp_path / "captures"), total_duration=1.0, frame_delay=0.015625)
