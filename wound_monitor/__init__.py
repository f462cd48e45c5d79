"""Frame-driven wound scan service."""

from .config import MonitorConfig
from .worker import ScanWorker

__all__ = ["MonitorConfig", "ScanWorker"]
