# services/logger_config.py
import logging
from logging.handlers import RotatingFileHandler
import os
from config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'

# Chatty libraries used by the HTTP backends and image handling
NOISY_LOGGERS = ("urllib3", "PIL", "aiosqlite")


def setup_logging() -> logging.Logger:
    """
    Configure the application logger once at startup.

    DEBUG and above go to a rotating log file (raw model output previews,
    per-image OCR details); the console shows settings.LOG_LEVEL and above.
    Calling it again replaces the handlers instead of stacking them.
    """
    logger = logging.getLogger(settings.LOGGER_NAME)
    if logger.hasHandlers():
        logger.handlers.clear()

    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(LOG_FORMAT)

    try:
        log_dir = os.path.dirname(settings.LOG_FILE_PATH)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            settings.LOG_FILE_PATH,
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
    except OSError as e:
        print(f"Error setting up file logger: {e}")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(settings.LOG_LEVEL.upper())
    logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured (console level {settings.LOG_LEVEL.upper()}, file {settings.LOG_FILE_PATH})")
    return logger
