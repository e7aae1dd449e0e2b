"""Time source and human-readable rendering of instants and durations."""
from datetime import datetime
from zoneinfo import ZoneInfo

from door_sensor.core.config import DisplayConfig

_DURATION_UNITS = (
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def ordinal(day: int) -> str:
    """Render a day of month as 1st, 2nd, 3rd, 4th, ..., 11th, 12th, 13th, ..., 21st."""
    if 10 <= day % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_elapsed(seconds: int) -> str:
    """Render a whole number of seconds as e.g. '3 hours, 12 minutes' or '1 day, 5 seconds'."""
    seconds = max(0, int(seconds))
    if seconds == 0:
        return "0 seconds"

    parts = []
    for name, size in _DURATION_UNITS:
        amount, seconds = divmod(seconds, size)
        if amount:
            parts.append(f"{amount} {name}" if amount == 1 else f"{amount} {name}s")
    return ", ".join(parts)


class Clock:
    """Supplies timezone-aware instants and formats them for people in the configured timezone."""

    def __init__(self, config: DisplayConfig | None = None):
        self.config = config or DisplayConfig()
        self.tz = ZoneInfo(self.config.timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def localize(self, instant: datetime) -> datetime:
        return instant.astimezone(self.tz)

    def format_date(self, instant: datetime) -> str:
        local = self.localize(instant)
        date_format = self.config.date_format.replace("{ordinal_day}", ordinal(local.day))
        return local.strftime(date_format)

    def format_time(self, instant: datetime) -> str:
        return self.localize(instant).strftime(self.config.time_format)

    def format_date_time(self, instant: datetime) -> str:
        """E.g. 'Mon, 19th Oct 2026 at 14:03:22 CEST'."""
        return f"{self.format_date(instant)} at {self.format_time(instant)}"
