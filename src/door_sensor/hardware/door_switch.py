import logging
from gpiozero import Button

from door_sensor.core.config import SensorConfig
from door_sensor.core.events import DoorState

logger = logging.getLogger(__name__)


class DoorSwitch:
    """Reads the door reed switch. A closed magnetic contact means the door is closed."""

    def __init__(self, config: SensorConfig):
        self.config = config
        # No bounce_time: debouncing happens by sampling in the transition detector
        self.button = Button(config.pin, pull_up=config.pull_up)
        logger.info(f"Reed switch configured on GPIO {config.pin} ({config.pull_up=})")

    def read(self) -> DoorState:
        """Current door state; raises whatever the pin backend raises on failure."""
        # is_pressed already folds in the pull direction, so this is the pulled-up level
        return DoorState.from_level(0 if self.button.is_pressed else 1)

    def close(self) -> None:
        self.button.close()
        logger.info("Reed switch released")
