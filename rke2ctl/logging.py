"""Logging configuration for the rke2ctl package."""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .config import LoggingSettings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

REDACT_KEYS = ("token", "password", "secret")


def setup_logging(debug_mode: bool = False, settings: Optional[LoggingSettings] = None) -> None:
    """Configure logging based on debug mode and the logging settings.

    Args:
        debug_mode: Force DEBUG level when True
        settings: Logging settings (level, optional rotating log file)
    """
    settings = settings or LoggingSettings()
    level = logging.DEBUG if debug_mode else getattr(logging, settings.level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler()
        ]
    )

    rke2_logger = logging.getLogger("rke2")
    rke2_logger.setLevel(level)

    if settings.file:
        log_file = Path(settings.file).expanduser().absolute()
        already_attached = any(
            isinstance(h, RotatingFileHandler) and h.baseFilename == str(log_file)
            for h in rke2_logger.handlers
        )
        if not already_attached:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=log_file,
                maxBytes=settings.max_size_mb * 1024 * 1024,
                backupCount=settings.backup_count
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            rke2_logger.addHandler(file_handler)
            rke2_logger.debug(f"Logging to file: {log_file}")

    # Disable debug logging for noisy libraries
    if not debug_mode:
        logging.getLogger('urllib3').setLevel(logging.WARNING)


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact sensitive data from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if any(
                redact_key in str(k).lower()
                for redact_key in REDACT_KEYS
            ) else redact_sensitive_data(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    return data
