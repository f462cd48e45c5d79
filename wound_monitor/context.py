from __future__ import annotations

import threading
from typing import Optional

from wound_measure.wm_types import CalibrationState, QRDetection


class CalibrationContext:
    """
    Most recent calibration produced by the frame loop.

    Written once per frame by the loop; read by the capture step. Every
    update replaces the previous state outright, so a frame without a QR
    code leaves no calibration behind.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state: Optional[CalibrationState] = None
        self._detection: Optional[QRDetection] = None
        self._frame_idx: Optional[int] = None

    def update(
        self,
        state: Optional[CalibrationState],
        detection: Optional[QRDetection],
        frame_idx: int,
    ) -> Optional[CalibrationState]:
        """Replace the current state; returns the one it replaced."""
        with self._lock:
            previous = self._state
            self._state = state
            self._detection = detection if state is not None else None
            self._frame_idx = frame_idx
            return previous

    def snapshot(self) -> tuple[Optional[CalibrationState], Optional[QRDetection]]:
        with self._lock:
            return self._state, self._detection

    @property
    def state(self) -> Optional[CalibrationState]:
        with self._lock:
            return self._state

    @property
    def frame_idx(self) -> Optional[int]:
        with self._lock:
            return self._frame_idx

    def clear(self) -> None:
        with self._lock:
            self._state = None
            self._detection = None
            self._frame_idx = None
