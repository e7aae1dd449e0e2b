import asyncio
import logging
import aiohttp

from door_sensor.core.config import NotificationConfig

logger = logging.getLogger(__name__)


class PushbulletNotifier:
    """Sends note pushes through the Pushbullet API. One attempt per notification, no retry."""

    def __init__(self, config: NotificationConfig):
        self.config = config

    @property
    def pushes_url(self) -> str:
        return f"{self.config.api_url.rstrip('/')}/pushes"

    async def send(self, title: str, body: str) -> bool:
        """
        Send a note push.

        Returns:
            True when Pushbullet acknowledged the push, False on any failure (already logged)
        """
        logger.info(f"Sending notification: {title=}")
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.pushes_url,
                    headers={
                        'Content-Type': 'application/json',
                        'Access-Token': self.config.api_key,
                    },
                    json={
                        'type': 'note',
                        'title': title,
                        'body': body,
                    },
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout)
                ) as response:
                    if not 200 <= response.status < 300:
                        logger.error(f"Failed to send notification! Pushbullet returned {response.status} {response.reason}")
                        return False
                    data = await response.json()

        except asyncio.TimeoutError:
            logger.error("Failed to send notification! Timeout contacting Pushbullet")
            return False
        except (aiohttp.ClientError, ValueError) as e:
            logger.error(f"Failed to send notification! {type(e).__name__}: {e}")
            return False

        if not isinstance(data, dict) or data.get('error') or not data.get('iden'):
            logger.error(f"Failed to send notification! Unexpected response: {data}")
            return False

        logger.info("Notification sent!")
        return True
