"""Configuration management for the door sensor and its collaborators."""
import math
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SensorConfig(BaseSettings):
    """Reed switch wiring and polling cadence."""
    model_config = SettingsConfigDict(env_prefix="SENSOR_", env_file=".env", extra="ignore")

    pin: int = Field(default=25, description="BCM pin of the reed switch (GPIO 25 = physical pin 37)")
    pull_up: bool = Field(default=True, description="Enable the internal pull-up resistor")
    poll_interval: float = Field(default=1.0, gt=0, description="Seconds between two sensor reads")


class PresenceConfig(BaseSettings):
    """Network probe used to decide whether the paired phone is home."""
    model_config = SettingsConfigDict(env_prefix="PRESENCE_", env_file=".env", extra="ignore")

    target: str = Field(description="Address of the phone on the local network")
    ipv6: bool = Field(default=True, description="Probe over IPv6 instead of IPv4")
    timeout: float = Field(default=2.0, gt=0, description="Seconds to wait for a single echo reply")
    retries: int = Field(default=4, ge=0, description="Extra attempts after a timed out echo")
    packet_size: int = Field(default=16, gt=0, description="ICMP payload size in bytes")
    ttl: int = Field(default=128, gt=0, le=255, description="Time to live / hop limit")
    ping_command: str = Field(default="ping", description="Ping executable")

    @field_validator('target')
    @classmethod
    def validate_target(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Presence target must not be empty")
        return v.strip()


class NotificationConfig(BaseSettings):
    """Pushbullet push notification endpoint."""
    model_config = SettingsConfigDict(env_prefix="PUSHBULLET_", env_file=".env", extra="ignore")

    api_url: str = Field(default="https://api.pushbullet.com/v2", description="Pushbullet API base URL")
    api_key: str = Field(description="Pushbullet access token")
    timeout: float = Field(default=10.0, gt=0, description="Total request timeout in seconds")

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Pushbullet API key must not be empty")
        return v


class DisplayConfig(BaseSettings):
    """How instants are rendered in notifications and log lines."""
    model_config = SettingsConfigDict(env_prefix="DISPLAY_", env_file=".env", extra="ignore")

    timezone: str = Field(default="Europe/Stockholm", description="IANA timezone for rendered instants")
    date_format: str = Field(default="%a, {ordinal_day} %b %Y", description="strftime date format, {ordinal_day} renders e.g. 3rd")
    time_format: str = Field(default="%H:%M:%S %Z", description="strftime time format")

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {v!r}") from e
        return v


class CaptureConfig(BaseSettings):
    """Photo capture session started when the door opens."""
    model_config = SettingsConfigDict(env_prefix="CAPTURE_", env_file=".env", extra="ignore")

    enabled: bool = Field(default=True, description="Whether door-opened events take photos")
    width: int = Field(default=1280, gt=0, description="Frame width in pixels")
    height: int = Field(default=720, gt=0, description="Frame height in pixels")
    quality: int = Field(default=85, ge=1, le=100, description="JPEG quality")
    output_dir: str = Field(default="runtime/captures", description="Root directory for capture sessions")
    total_duration: float = Field(default=30.0, ge=0, description="Length of a capture session in seconds")
    frame_delay: float = Field(default=2.0, gt=0, description="Seconds between two frames")

    @property
    def resolution(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def target_frame_count(self) -> int:
        """Number of frames a full session takes."""
        return math.floor(self.total_duration / self.frame_delay + 1e-9)


class DatabaseConfig(BaseSettings):
    """Event log storage."""
    model_config = SettingsConfigDict(env_prefix="DB_", env_file=".env", extra="ignore")

    path: str = Field(default="runtime/door_sensor.db", description="SQLite database file")


class RuntimeConfig(BaseSettings):
    """Configuration for logging."""
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str = Field(default="runtime/logs", description="Logging directory")
    log_file: str = Field(default="runtime/logs/door_sensor.log", description="Logging file")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level {v!r}")
        return level


class AppConfig(BaseModel):
    """Every settings block the application needs, validated together at startup."""
    sensor: SensorConfig
    presence: PresenceConfig
    notification: NotificationConfig
    display: DisplayConfig
    capture: CaptureConfig
    database: DatabaseConfig

    @model_validator(mode='after')
    def validate_capture_cadence(self) -> 'AppConfig':
        capture = self.capture
        if capture.enabled and capture.total_duration < capture.frame_delay:
            raise ValueError("capture.total_duration must be at least one capture.frame_delay")
        return self


def load_config() -> AppConfig:
    """Load and validate all settings blocks; raises pydantic.ValidationError on bad input."""
    return AppConfig(
        sensor=SensorConfig(),
        presence=PresenceConfig(),
        notification=NotificationConfig(),
        display=DisplayConfig(),
        capture=CaptureConfig(),
        database=DatabaseConfig(),
    )


runtime_config = RuntimeConfig()
