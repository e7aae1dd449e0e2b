"""Checks whether the paired phone answers on the local network."""
import asyncio
import logging
import math

from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    retry_if_exception_type,
    before_sleep_log,
    wait_none,
)

from door_sensor.core.config import PresenceConfig
from door_sensor.core.events import PresenceResult

logger = logging.getLogger(__name__)

# ping exits with 1 when no reply arrived in time, 2 and above on any other error
PING_NO_REPLY = 1
# Extra seconds granted to the ping process beyond its own reply timeout
PROCESS_GRACE = 1.0


class PingTimeout(Exception):
    """No echo reply within the timeout."""


class PingError(Exception):
    """The ping could not be performed at all."""


class PresenceProbe:
    """ICMP echo probe. Timeouts mean the phone is away; every other failure is UNKNOWN."""

    def __init__(self, config: PresenceConfig):
        self.config = config

    def build_command(self, target: str) -> list[str]:
        return [
            self.config.ping_command,
            "-6" if self.config.ipv6 else "-4",
            "-c", "1",
            "-W", str(max(1, math.ceil(self.config.timeout))),
            "-s", str(self.config.packet_size),
            "-t", str(self.config.ttl),
            target,
        ]

    async def check(self, target: str | None = None) -> PresenceResult:
        target = target or self.config.target
        try:
            await self._ping_with_retries(target)
        except PingTimeout:
            logger.info(f"Phone {target} did not answer after {self.config.retries + 1} attempts")
            return PresenceResult.ABSENT
        except Exception as e:
            logger.error(f"Presence probe for {target} failed: {type(e).__name__}: {e}")
            return PresenceResult.UNKNOWN

        logger.info(f"Phone {target} answered")
        return PresenceResult.PRESENT

    async def _ping_with_retries(self, target: str) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.retries + 1),
            retry=retry_if_exception_type(PingTimeout),
            wait=wait_none(),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._ping_once(target)

    async def _ping_once(self, target: str) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_command(target),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise PingError(f"Cannot run {self.config.ping_command}: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.config.timeout + PROCESS_GRACE
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise PingTimeout(f"ping to {target} exceeded {self.config.timeout}s")

        if process.returncode == 0:
            return
        if process.returncode == PING_NO_REPLY:
            raise PingTimeout(f"No reply from {target}")
        raise PingError(f"ping exited with {process.returncode}: {stderr.decode(errors='replace').strip()}")
