import asyncio
import sqlite3
from datetime import timedelta

import pytest
from conftest import FakeCamera, FakeClock, FakeDoorSwitch, FakeNotifier, FakePresenceProbe, START
from door_sensor.capture.capture_session import CaptureSession, CaptureState
from door_sensor.core.config import CaptureConfig
from door_sensor.core.events import PresenceResult
from door_sensor.detection.event_orchestrator import EventOrchestrator
from door_sensor.detection.transition_detector import TransitionDetector
from door_sensor.storage.event_log import EventLog


def _logged_events(db_path):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute("SELECT event, event_time_unix, phone_connected FROM log ORDER BY id").fetchall()
    finally:
        conn.close()


async def _wire(tmp_path, levels, capture_config, probe, clock):
    event_log = EventLog(str(tmp_path / "door_sensor.db"), tz=clock.tz)
    await event_log.initialize()
    camera = FakeCamera()
    session = CaptureSession(camera, capture_config, tz=clock.tz)
    notifier = FakeNotifier()
    orchestrator = EventOrchestrator(
        clock=clock,
        presence_probe=probe,
        event_log=event_log,
        notifier=notifier,
        capture_session=session,
    )
    detector = TransitionDetector(
        reader=FakeDoorSwitch(levels),
        clock=clock,
        on_transition=orchestrator.handle,
        event_log=event_log,
    )
    return detector, session, camera, notifier


@pytest.mark.asyncio
async def test_open_and_close_while_away(tmp_path, capture_config):
    clock = FakeClock(START)
    detector, session, camera, notifier = await _wire(
        tmp_path, [0, 1, 1, 0], capture_config, FakePresenceProbe(PresenceResult.ABSENT), clock
    )

    await detector.initialize()
    clock.advance(30)
    opened = detector.poll()
    await detector.dispatch(opened)

    # Let the capture session finish its frames
    await asyncio.sleep(0.4)
    assert session.state is CaptureState.COMPLETED
    expected_frames = 5
    assert len(list(session.output_dir.glob("frame_*.jpg"))) == expected_frames

    clock.advance(60)
    assert detector.poll() is None
    clock.advance(60)
    closed = detector.poll()
    await detector.dispatch(closed)

    start_ms = 1792411200000
    expected_rows = [
        ("DOOR_OPEN", start_ms + 30_000, 0),
        ("DOOR_CLOSE", start_ms + 150_000, 0),
    ]
    assert _logged_events(tmp_path / "door_sensor.db") == expected_rows

    expected_titles = ["Door was opened!", "Door was closed!"]
    assert [title for title, _ in notifier.sent] == expected_titles
    assert notifier.sent[0][1].endswith("Door was closed for 30 seconds")
    assert notifier.sent[1][1].endswith("Door was open for 2 minutes")


@pytest.mark.asyncio
async def test_open_while_home_discards_photos(tmp_path):
    clock = FakeClock(START)
    probe = FakePresenceProbe(PresenceResult.PRESENT, delay=0.1)
    long_config = CaptureConfig(output_dir=str(tmp_path / "captures"), total_duration=1.0, frame_delay=0.015625)
    detector, session, camera, notifier = await _wire(
        tmp_path, [0, 1], long_config, probe, clock
    )

    await detector.initialize()
    clock.advance(5)
    await detector.dispatch(detector.poll())

    assert camera.calls > 0
    assert session.state is CaptureState.ABORTED
    assert not session.session_dir_for(START + timedelta(seconds=5)).exists()
    assert notifier.sent == []

    expected_rows = [("DOOR_OPEN", 1792411205000, 1)]
    assert _logged_events(tmp_path / "door_sensor.db") == expected_rows


@pytest.mark.asyncio
async def test_restart_resumes_elapsed_time_from_log(tmp_path, capture_config):
    clock = FakeClock(START)
    detector, first_session, _, _ = await _wire(
        tmp_path, [0, 1], capture_config, FakePresenceProbe(PresenceResult.ABSENT), clock
    )
    await detector.initialize()
    clock.advance(10)
    await detector.dispatch(detector.poll())
    await detector.stop()
    first_session.stop()

    # Same database, process restarted an hour later with the door open
    clock.advance(3600)
    detector, second_session, _, notifier = await _wire(
        tmp_path, [1, 0], capture_config, FakePresenceProbe(PresenceResult.ABSENT), clock
    )
    await detector.initialize()
    clock.advance(2)
    closed = detector.poll()

    expected_elapsed = 3602
    assert closed.elapsed_seconds == expected_elapsed
    await detector.dispatch(closed)
    assert notifier.sent[0][1].endswith("Door was open for 1 hour, 2 seconds")
    second_session.stop()
