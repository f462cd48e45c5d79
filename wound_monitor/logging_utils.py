import logging
from typing import Optional

SCAN_LOG_FORMAT = "%(asctime)s %(levelname)s [%(subject)s|%(provider)s] %(message)s"


class ScanContextFilter(logging.Filter):
    """Stamps every record with the subject being scanned and its provider."""

    def __init__(self, subject_key: str, provider_id: Optional[str] = None):
        super().__init__()
        self.subject_key = subject_key
        self.provider_id = provider_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.subject = self.subject_key
        record.provider = self.provider_id or "-"
        return True


def _scan_handler(handler: logging.Handler, subject_key: str, provider_id: Optional[str]) -> logging.Handler:
    handler.setFormatter(logging.Formatter(SCAN_LOG_FORMAT))
    handler.addFilter(ScanContextFilter(subject_key, provider_id))
    return handler


def setup_logger(
    subject_key: str,
    provider_id: Optional[str] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """One logger per subject; the console handler is attached only once."""
    logger = logging.getLogger(f"wound_monitor.{subject_key}")
    logger.setLevel(level)
    if not logger.handlers:
        logger.addHandler(_scan_handler(logging.StreamHandler(), subject_key, provider_id))
    return logger


def add_file_handler(
    logger: logging.Logger,
    subject_key: str,
    log_path: str,
    provider_id: Optional[str] = None,
) -> logging.Handler:
    """Attach a session log file. The caller removes and closes the returned handler."""
    handler = _scan_handler(logging.FileHandler(log_path), subject_key, provider_id)
    logger.addHandler(handler)
    return handler
