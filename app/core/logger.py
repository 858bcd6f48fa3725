import os
import logging
from logging.handlers import TimedRotatingFileHandler

from app.core.config import settings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "heart-track"):
    logger = logging.getLogger(name)
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.DEBUG)
    logger.setLevel(level)

    # Handlers are attached once per named logger
    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        logger.addHandler(console)

        # One file per logger name, rotated at midnight, last 7 days kept
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=os.path.join(settings.LOG_DIR, f"{name}.log"),
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
            utc=True,
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
