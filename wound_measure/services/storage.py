from __future__ import annotations

import json
import uuid
from pathlib import Path
from time import strftime
from typing import Iterator, Optional

import cv2

from ..wm_types import ScanRecord


def _safe_key(subject_key: str) -> str:
    key = "".join(c if c.isalnum() or c in "-_." else "_" for c in str(subject_key).strip())
    return key or "unknown"


def _read_records(path: Path) -> Iterator[ScanRecord]:
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as fp:
        for line in fp:
            line = line.strip()
            if line:
                yield ScanRecord.from_dict(json.loads(line))


class ScanStorage:
    """
    Session directories plus append-only scan logs.

    Layout under root:
        <name>_<YYYYmmdd_HHMMSS>/
            config.json
            logs/
            scans/<subject>/<timestamp_ms>.jpg
            scans.jsonl
        subjects/<subject>/scans.jsonl

    The per-subject log outlives sessions and holds every scan of that
    subject taken under this root.
    """

    RECORDS_FILE = "scans.jsonl"
    SUBJECTS_DIR = "subjects"

    def __init__(self, root: str | Path, name: str = "wound_session"):
        self.root = Path(root)
        self.name = name
        self.session_dir: Optional[Path] = None
        self.scans_dir: Optional[Path] = None
        self.logs_dir: Optional[Path] = None
        self.last_path: Optional[str] = None

    def begin(self) -> str:
        base = f"{self.name}_{strftime('%Y%m%d_%H%M%S')}"
        sid, n = base, 1
        while (self.root / sid).exists():
            sid = f"{base}_{n}"
            n += 1
        self.session_dir = self.root / sid
        self.scans_dir = self.session_dir / "scans"
        self.logs_dir = self.session_dir / "logs"
        for d in (self.scans_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)
        return str(self.session_dir)

    @property
    def records_path(self) -> Path:
        if self.session_dir is None:
            raise RuntimeError("storage session not started; call begin() first")
        return self.session_dir / self.RECORDS_FILE

    def history_path(self, subject_key: str) -> Path:
        return self.root / self.SUBJECTS_DIR / _safe_key(subject_key) / self.RECORDS_FILE

    def save_image(self, subject_key: str, timestamp: float, image, quality: int = 80) -> str:
        """Save the captured frame as JPEG and return its path."""
        if self.scans_dir is None:
            raise RuntimeError("storage session not started; call begin() first")
        subject_dir = self.scans_dir / _safe_key(subject_key)
        subject_dir.mkdir(parents=True, exist_ok=True)
        p = subject_dir / f"{int(timestamp * 1000)}.jpg"
        ok = cv2.imwrite(str(p), image, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
        if ok is False:
            raise RuntimeError(f"Failed to write scan image: {p}")
        self.last_path = str(p)
        return str(p)

    def append_record(self, record: ScanRecord) -> None:
        """Append to the session log and to the subject's history."""
        line = json.dumps(record.as_dict()) + "\n"
        with self.records_path.open("a", encoding="utf-8") as fp:
            fp.write(line)
        history = self.history_path(record.subject_key)
        history.parent.mkdir(parents=True, exist_ok=True)
        with history.open("a", encoding="utf-8") as fp:
            fp.write(line)

    def iter_records(self) -> Iterator[ScanRecord]:
        return _read_records(self.records_path)

    def records_for(self, subject_key: str) -> list[ScanRecord]:
        return [r for r in self.iter_records() if r.subject_key == subject_key]

    def history_for(self, subject_key: str) -> list[ScanRecord]:
        """Every stored scan of a subject, across sessions. No session needed."""
        return [
            r for r in _read_records(self.history_path(subject_key))
            if r.subject_key == subject_key
        ]

    def write_manifest(self, meta: dict):
        with open(self.session_dir / "config.json", "w") as fp:
            json.dump(meta, fp, indent=2)

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex
