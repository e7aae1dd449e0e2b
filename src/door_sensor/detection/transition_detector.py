import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from door_sensor.core.clock import Clock
from door_sensor.core.events import DoorState, TransitionEvent
from door_sensor.hardware.door_switch import DoorSwitch
from door_sensor.storage.event_log import EventLog

logger = logging.getLogger(__name__)

TransitionHandler = Callable[[TransitionEvent], Awaitable[None]]


class TransitionDetector:
    """
    Samples the door switch on a fixed cadence and emits a TransitionEvent whenever
    the sampled state differs from the previous sample.

    Owns the last observed state and the timestamp of the last transition. Each event
    is handed to ``on_transition`` as its own task, in detection order; the poll loop
    does not wait for it.
    """

    def __init__(
        self,
        reader: DoorSwitch,
        clock: Clock,
        on_transition: TransitionHandler,
        poll_interval: float = 1.0,
        event_log: EventLog | None = None,
    ):
        self.reader = reader
        self.clock = clock
        self.on_transition = on_transition
        self.poll_interval = poll_interval
        self.event_log = event_log
        self.last_state: DoorState | None = None
        self.last_event_time: datetime | None = None
        self._tasks: set[asyncio.Task] = set()
        self._poll_task: asyncio.Task | None = None

    async def initialize(self) -> None:
        """Take the initial reading and pick the elapsed-time baseline."""
        startup_time = self.clock.now()
        self.last_event_time = await self._recover_baseline(startup_time)

        try:
            self.last_state = self.reader.read()
            logger.info(f"Initial door state: {self.last_state.name}")
        except Exception as e:
            logger.error(f"Initial sensor read failed, first successful poll sets the state: {e}", exc_info=True)

    async def _recover_baseline(self, startup_time: datetime) -> datetime:
        if self.event_log is None:
            return startup_time
        try:
            latest = await self.event_log.latest_event_time()
        except Exception as e:
            logger.error(f"Could not read last logged event, using startup time as baseline: {e}")
            return startup_time

        if latest is None or latest >= startup_time:
            return startup_time
        logger.info(f"Resuming from last logged event at {self.clock.format_date_time(latest)}")
        return latest

    def poll(self) -> TransitionEvent | None:
        """One sampling tick. Returns the transition if the state changed."""
        try:
            state = self.reader.read()
        except Exception as e:
            logger.error(f"Sensor read failed, skipping this tick: {e}")
            return None

        if self.last_state is None:
            self.last_state = state
            logger.info(f"Door state established: {state.name}")
            return None

        if state == self.last_state:
            return None

        self.last_state = state
        occurred_at = self.clock.now()
        event = TransitionEvent(
            new_state=state,
            occurred_at=occurred_at,
            previous_occurred_at=self.last_event_time or occurred_at,
        )
        self.last_event_time = occurred_at
        return event

    async def run(self) -> None:
        """Initialize, then poll until cancelled."""
        await self.initialize()
        logger.info(f"Polling door sensor every {self.poll_interval}s")
        while True:
            await asyncio.sleep(self.poll_interval)
            event = self.poll()
            if event is not None:
                self.dispatch(event)

    def start(self) -> asyncio.Task:
        self._poll_task = asyncio.create_task(self.run())
        return self._poll_task

    def dispatch(self, event: TransitionEvent) -> asyncio.Task:
        task = asyncio.create_task(self.on_transition(event))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Transition handling failed", exc_info=error)

    async def stop(self) -> None:
        """Cancel the poll loop and any in-flight transition handling."""
        pending = list(self._tasks)
        if self._poll_task is not None:
            pending.append(self._poll_task)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._poll_task = None
        logger.info("Transition detector stopped")
