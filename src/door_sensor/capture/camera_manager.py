"""Still capture through Picamera2."""
import logging
import time
from io import BytesIO
from PIL import Image
from picamera2 import Picamera2

from door_sensor.core.config import CaptureConfig

logger = logging.getLogger(__name__)

# Seconds for auto exposure and white balance to settle after the sensor starts
WARMUP_TIME = 2.0


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    """JPEG cannot carry alpha, so RGBA/XBGR captures are flattened to RGB first."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = BytesIO()
    image.save(buffer, format='JPEG', quality=quality)
    return buffer.getvalue()


class CameraManager:
    """
    Keeps one Picamera2 running in still mode for the lifetime of the process.

    Frames are grabbed on demand by the capture session; the sensor is not
    restarted between sessions, so the warm-up cost is paid once at startup.
    """

    def __init__(self, config: CaptureConfig):
        self.config = config
        self.camera: Picamera2 | None = None
        self.running = False

    def initialize(self) -> None:
        logger.info(f"Opening camera for {self.config.width}x{self.config.height} stills")
        try:
            self.camera = Picamera2()
            self.camera.configure(
                self.camera.create_still_configuration(main={"size": self.config.resolution}, display=None)
            )
        except Exception as e:
            logger.error(f"Camera could not be opened: {e}", exc_info=True)
            raise
        logger.debug(f"Camera configuration: {self.camera.camera_configuration()}")

    def start(self) -> None:
        if self.camera is None:
            raise RuntimeError("Camera not initialized. Call initialize() first.")

        self.camera.start()
        self.running = True
        logger.info(f"📷 Camera running, settling for {WARMUP_TIME}s")
        time.sleep(WARMUP_TIME)

    def capture_image_bytes(self, name: str = "main", quality: int | None = None) -> bytes | None:
        """Grab one frame from stream ``name`` as JPEG bytes.

        Returns:
            The encoded frame, or None when the camera is not running or the grab failed
        """
        if not self.running:
            logger.error("Frame requested while the camera is not running")
            return None

        try:
            return encode_jpeg(self.camera.capture_image(name), quality or self.config.quality)
        except Exception as e:
            logger.error(f"Frame grab failed: {e}", exc_info=True)
            return None

    def cleanup(self) -> None:
        """Stop the sensor and release the device. Safe to call more than once."""
        if self.camera is None:
            return

        try:
            if self.running:
                self.camera.stop()
            self.camera.close()
            logger.info("Camera released")
        except Exception as e:
            logger.error(f"Error releasing camera: {e}", exc_info=True)
        finally:
            self.running = False
            self.camera = None
