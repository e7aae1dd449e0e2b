import asyncio
import logging

from door_sensor.capture.capture_session import CaptureSession
from door_sensor.core.clock import Clock, format_elapsed
from door_sensor.core.events import DoorState, EventRecord, PresenceResult, TransitionEvent
from door_sensor.network.presence_probe import PresenceProbe
from door_sensor.notifications.pushbullet import PushbulletNotifier
from door_sensor.storage.event_log import EventLog

logger = logging.getLogger(__name__)


class EventOrchestrator:
    """
    Reacts to one door transition: starts or aborts the capture session, asks whether
    the phone is home, records the event and notifies when nobody is confirmed home.

    Capture start happens before the presence probe is awaited so photos begin the
    moment the door opens. Event log writes are chained so they land in transition
    order even when a later transition's probe answers first; notifications are not
    ordered relative to each other.
    """

    def __init__(
        self,
        clock: Clock,
        presence_probe: PresenceProbe,
        event_log: EventLog,
        notifier: PushbulletNotifier,
        capture_session: CaptureSession | None = None,
    ):
        self.clock = clock
        self.presence_probe = presence_probe
        self.event_log = event_log
        self.notifier = notifier
        self.capture_session = capture_session
        self._last_log_write: asyncio.Event | None = None

    async def handle(self, event: TransitionEvent) -> None:
        elapsed = format_elapsed(event.elapsed_seconds)
        date_time = self.clock.format_date_time(event.occurred_at)
        opened = event.new_state is DoorState.OPEN
        previous_state = "closed" if opened else "open"
        logger.info(f"{date_time}: Door {'opened' if opened else 'closed'}!\nDoor was {previous_state} for {elapsed}")

        capture_generation = None
        if opened and self.capture_session is not None:
            capture_generation = self.capture_session.start(event.occurred_at)

        # Claim this event's slot in the log write order before suspending
        previous_write = self._last_log_write
        log_written = asyncio.Event()
        self._last_log_write = log_written

        try:
            presence = await self._check_presence()

            if capture_generation is not None and presence is PresenceResult.PRESENT:
                logger.info("Phone is home, aborting capture session")
                self.capture_session.abort(capture_generation)

            record = EventRecord.from_transition(event, presence)
            title = f"Door was {'opened' if opened else 'closed'}!"
            body = (
                f"Door was {'opened' if opened else 'closed'} on {date_time}\n\n"
                f"Door was {previous_state} for {elapsed}"
            )
            await asyncio.gather(
                self._persist(record, previous_write, log_written),
                self._notify(presence, title, body),
            )
        finally:
            # Release later events even if this one was cancelled mid-way
            log_written.set()

    async def _check_presence(self) -> PresenceResult:
        try:
            return await self.presence_probe.check()
        except Exception as e:
            logger.error(f"Presence probe raised, treating phone as unknown: {type(e).__name__}: {e}", exc_info=True)
            return PresenceResult.UNKNOWN

    async def _persist(self, record: EventRecord, previous_write: asyncio.Event | None, log_written: asyncio.Event) -> None:
        try:
            if previous_write is not None:
                await previous_write.wait()
            await self.event_log.append(record)
        except Exception as e:
            logger.error(f"Failed to log {record.event}: {type(e).__name__}: {e}", exc_info=True)
        finally:
            log_written.set()

    async def _notify(self, presence: PresenceResult, title: str, body: str) -> None:
        if presence is PresenceResult.PRESENT:
            logger.info("Phone is on the network.")
            return

        logger.info(f"Phone is not confirmed on the network ({presence.name}). Sending notification...")
        try:
            await self.notifier.send(title, body)
        except Exception as e:
            logger.error(f"Notification failed: {type(e).__name__}: {e}", exc_info=True)

    def close(self) -> None:
        if self.capture_session is not None:
            self.capture_session.stop()
