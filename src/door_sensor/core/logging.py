import logging
import sys
import os
from door_sensor.core.config import runtime_config


def setup_logging() -> logging.Logger:
    """Configure logging for the door sensor process"""
    os.makedirs(runtime_config.log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    level = getattr(logging, runtime_config.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # File handler keeps the unattended history
    file_handler = logging.FileHandler(runtime_config.log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # aiohttp logs every connection at INFO otherwise
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    return root_logger
