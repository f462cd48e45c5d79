from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from wound_measure.services.csv_writer import CsvWriter
from wound_measure.wm_types import ScanRecord


logger = logging.getLogger(__name__)


class OutputSink(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def write_scan(self, frame_idx: int, record: ScanRecord) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(OutputSink):
    def __init__(self, filename: str = "measurements.csv"):
        self.filename = filename
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        path = session_dir / self.filename
        self._writer = CsvWriter(str(path))
        self._writer.open()

    def write_scan(self, frame_idx: int, record: ScanRecord) -> None:
        if self._writer is None:
            return
        self._writer.append(
            record.timestamp, frame_idx, record.subject_key,
            record.measurement, record.calibration_scale, record.image_ref,
        )

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class PublisherOutput(OutputSink):
    """Forwards each scan as a CSV line to a client exposing publish(line)."""

    def __init__(self, publisher: Any):
        self.publisher = publisher
        self._published_header = False

    def open(self, session_dir: Path) -> None:
        return None

    def _publish_header_once(self) -> None:
        if not self._published_header:
            self.publisher.publish(",".join(CsvWriter.HEADER))
            self._published_header = True

    def write_scan(self, frame_idx: int, record: ScanRecord) -> None:
        try:
            self._publish_header_once()
            line = CsvWriter.to_csv_line(
                record.timestamp, frame_idx, record.subject_key,
                record.measurement, record.calibration_scale, record.image_ref,
            )
            self.publisher.publish(line)
        except Exception as e:
            logger.warning("Scan publish failed: %s", e)

    def close(self) -> None:
        close = getattr(self.publisher, "close", None)
        if callable(close):
            close()


class NullOutput(OutputSink):
    def open(self, session_dir: Path) -> None:
        return None

    def write_scan(self, frame_idx: int, record: ScanRecord) -> None:
        return None

    def close(self) -> None:
        return None
