import asyncio
import signal
import sys
import logging
import os

from pydantic import ValidationError

from door_sensor.capture.camera_manager import CameraManager
from door_sensor.capture.capture_session import CaptureSession
from door_sensor.core.clock import Clock
from door_sensor.core.config import AppConfig, DatabaseConfig, DisplayConfig, load_config
from door_sensor.core.logging import setup_logging
from door_sensor.detection.event_orchestrator import EventOrchestrator
from door_sensor.detection.transition_detector import TransitionDetector
from door_sensor.hardware.door_switch import DoorSwitch
from door_sensor.network.presence_probe import PresenceProbe
from door_sensor.notifications.pushbullet import PushbulletNotifier
from door_sensor.storage.event_log import EventLog


def signal_handler(signum, frame):
    """Handle shutdown gracefully"""
    logger = logging.getLogger(__name__)
    logger.info("Shutdown signal received, terminating door sensor...")
    sys.exit(0)


def open_camera(config: AppConfig) -> CameraManager | None:
    """Start the camera for capture sessions; None when capture is disabled or the camera fails."""
    logger = logging.getLogger(__name__)
    if not config.capture.enabled:
        logger.info("Photo capture is disabled")
        return None
    camera = CameraManager(config.capture)
    try:
        camera.initialize()
        camera.start()
    except Exception as e:
        logger.error(f"Camera unavailable, continuing without photo capture: {e}")
        camera.cleanup()
        return None
    return camera


async def start_camera(config: AppConfig) -> CameraManager | None:
    """Open the camera off the event loop; the warm-up sleep would otherwise stall polling."""
    return await asyncio.to_thread(open_camera, config)


async def app():
    setup_logging()
    main_logger = logging.getLogger(__name__)

    main_logger.info("=== Starting Door Sensor ===")
    main_logger.info(f"Process ID: {os.getpid()=}")
    main_logger.info(f"Python version: {sys.version}")

    try:
        config = load_config()
    except ValidationError as e:
        main_logger.error(f"Invalid configuration:\n{e}")
        raise

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    main_logger.info("Signal handlers configured for graceful shutdown")

    clock = Clock(config.display)
    event_log = EventLog(config.database.path, tz=clock.tz)
    await event_log.initialize()

    camera = await start_camera(config)
    capture_session = CaptureSession(camera, config.capture, tz=clock.tz) if camera else None

    orchestrator = EventOrchestrator(
        clock=clock,
        presence_probe=PresenceProbe(config.presence),
        event_log=event_log,
        notifier=PushbulletNotifier(config.notification),
        capture_session=capture_session,
    )
    door_switch = DoorSwitch(config.sensor)
    detector = TransitionDetector(
        reader=door_switch,
        clock=clock,
        on_transition=orchestrator.handle,
        poll_interval=config.sensor.poll_interval,
        event_log=event_log,
    )

    try:
        main_logger.info("Door Sensor is running.")
        await detector.start()
    except Exception as e:
        main_logger.error(f"Critical error in door sensor: {e}", exc_info=True)
        raise
    finally:
        await detector.stop()
        orchestrator.close()
        door_switch.close()
        if camera is not None:
            camera.cleanup()
        main_logger.info("=== Door Sensor stopped ===")


async def reset_event_log():
    setup_logging()
    clock = Clock(DisplayConfig())
    event_log = EventLog(DatabaseConfig().path, tz=clock.tz)
    await event_log.initialize(force=True)
    logging.getLogger(__name__).info("Event log synchronized!")


def main():
    """Entry point for the door-sensor command"""
    asyncio.run(app())


def init_db():
    """Entry point for door-sensor-init-db: drops and recreates the event log"""
    asyncio.run(reset_event_log())


if __name__ == "__main__":
    main()
