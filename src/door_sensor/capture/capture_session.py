"""Timed photo capture tied to a door-opened transition."""
import asyncio
import logging
import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path
from zoneinfo import ZoneInfo

from door_sensor.capture.camera_manager import CameraManager
from door_sensor.core.config import CaptureConfig

logger = logging.getLogger(__name__)

SESSION_DIR_FORMAT = "%Y-%m-%d_%H-%M-%S"


class CaptureState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABORTED = "aborted"


class CaptureSession:
    """
    Takes one frame every ``frame_delay`` seconds until ``target_frame_count`` frames
    are on disk or the session is aborted.

    All transitions happen on the event loop thread: ``start`` and ``abort`` are plain
    synchronous calls and each tick is a single loop callback, so a tick never
    interleaves with an abort. At most one tick handle is pending at any time.
    """

    def __init__(self, camera: CameraManager, config: CaptureConfig, tz: ZoneInfo | None = None):
        self.camera = camera
        self.config = config
        self.tz = tz
        self.state = CaptureState.IDLE
        self.output_dir: Path | None = None
        self.frames_taken = 0
        self.target_frame_count = 0
        self.generation = 0
        self._timer: asyncio.Handle | None = None
        self._output_created = False

    @property
    def is_active(self) -> bool:
        return self.state is CaptureState.ACTIVE

    def session_dir_for(self, occurred_at: datetime) -> Path:
        local = occurred_at.astimezone(self.tz) if self.tz else occurred_at
        return Path(self.config.output_dir) / local.strftime(SESSION_DIR_FORMAT)

    def start(self, occurred_at: datetime) -> int:
        """
        Begin a fresh session anchored at ``occurred_at``; supersedes any running one.

        Returns:
            The session generation, to be handed back to ``abort``
        """
        self.generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info(f"Superseding capture session {self.output_dir} after {self.frames_taken} frames")

        self.output_dir = self.session_dir_for(occurred_at)
        self._output_created = False
        self.frames_taken = 0
        self.target_frame_count = self.config.target_frame_count
        self.state = CaptureState.ACTIVE
        logger.info(f"📷 Capture session started: {self.output_dir} ({self.target_frame_count=}, {self.config.frame_delay=}s)")

        if self.target_frame_count <= 0:
            self._complete()
        else:
            self._timer = asyncio.get_running_loop().call_soon(self._tick)
        return self.generation

    def abort(self, generation: int | None = None) -> None:
        """
        Cancel the pending tick and remove partial output. No-op when no session is active.

        With ``generation``, only the session that ``start`` returned it for is aborted;
        a session started since then is left running.
        """
        if not self.is_active:
            logger.debug(f"Abort requested with no active capture session ({self.state=})")
            return
        if generation is not None and generation != self.generation:
            logger.info(f"Ignoring abort for superseded capture session #{generation}, #{self.generation} keeps running")
            return

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._output_created and self.output_dir is not None:
            try:
                shutil.rmtree(self.output_dir)
                logger.info(f"Removed {self.frames_taken} partial frames in {self.output_dir}")
            except OSError as e:
                logger.error(f"Failed to remove capture directory {self.output_dir}: {e}")

        logger.info(f"🛑 Capture session aborted: {self.output_dir}")
        self.state = CaptureState.ABORTED
        self._reset()

    def stop(self) -> None:
        """Stop ticking on shutdown. Frames already written are kept."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.is_active:
            logger.info(f"Capture session stopped at shutdown after {self.frames_taken} frames: {self.output_dir}")
            self.state = CaptureState.COMPLETED

    def _tick(self) -> None:
        self._timer = None
        if not self.is_active:
            return

        image_bytes = None
        try:
            image_bytes = self.camera.capture_image_bytes(quality=self.config.quality)
        except Exception as e:
            logger.error(f"Frame capture raised: {e}", exc_info=True)

        if image_bytes:
            self._persist_frame(image_bytes)
        else:
            logger.warning(f"Skipping frame, capture failed ({self.frames_taken}/{self.target_frame_count} saved)")

        if self.frames_taken < self.target_frame_count:
            self._timer = asyncio.get_running_loop().call_later(self.config.frame_delay, self._tick)
        else:
            self._complete()

    def _persist_frame(self, image_bytes: bytes) -> None:
        frame_path = self.output_dir / f"frame_{self.frames_taken + 1:03d}.jpg"
        try:
            if not self._output_created:
                self.output_dir.mkdir(parents=True, exist_ok=True)
                self._output_created = True
            frame_path.write_bytes(image_bytes)
        except OSError as e:
            logger.error(f"Failed to write frame {frame_path}: {e}")
            return

        self.frames_taken += 1
        logger.debug(f"Saved frame {self.frames_taken}/{self.target_frame_count} to {frame_path}")

    def _complete(self) -> None:
        self._timer = None
        self.state = CaptureState.COMPLETED
        logger.info(f"✅ Capture session completed: {self.frames_taken} frames in {self.output_dir}")

    def _reset(self) -> None:
        self.output_dir = None
        self.frames_taken = 0
        self.target_frame_count = 0
        self._output_created = False
