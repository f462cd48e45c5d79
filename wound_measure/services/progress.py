from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..strategies.classify_trend import (
    DEFAULT_NOTIFY_THRESHOLD_CM2,
    DEFAULT_TREND_THRESHOLD_CM2,
    Recommendation,
    classify,
    needs_provider_notification,
    recommendations,
)
from ..wm_types import ScanRecord, Trend
from .storage import ScanStorage


@dataclass(frozen=True)
class TimelineEntry:
    record: ScanRecord
    status: Trend


@dataclass(frozen=True)
class ProgressSummary:
    subject_key: str
    scans: int
    latest: Optional[ScanRecord]
    trend: Optional[Trend]
    recommendations: list[Recommendation]
    notify_provider: bool


def _compare(current: ScanRecord, previous: ScanRecord, threshold_cm2: float) -> Trend:
    a, b = current.measurement, previous.measurement
    if not (a.calibrated and b.calibrated) or a.area_cm2 is None or b.area_cm2 is None:
        return Trend.STABLE
    return classify(a.area_cm2, b.area_cm2, threshold_cm2)


class ProgressLog:
    """Per-subject view of every stored scan: timeline, trend and care guidance."""

    def __init__(
        self,
        storage: ScanStorage,
        trend_threshold_cm2: float = DEFAULT_TREND_THRESHOLD_CM2,
        notify_threshold_cm2: float = DEFAULT_NOTIFY_THRESHOLD_CM2,
    ):
        self.storage = storage
        self.trend_threshold_cm2 = trend_threshold_cm2
        self.notify_threshold_cm2 = notify_threshold_cm2

    def scans(self, subject_key: str) -> list[ScanRecord]:
        """Scans for one subject, newest first."""
        return sorted(
            self.storage.history_for(subject_key),
            key=lambda r: r.timestamp,
            reverse=True,
        )

    def timeline(self, subject_key: str) -> list[TimelineEntry]:
        scans = self.scans(subject_key)
        entries = []
        for i, rec in enumerate(scans):
            if i + 1 < len(scans):
                status = _compare(rec, scans[i + 1], self.trend_threshold_cm2)
            else:
                status = Trend.STABLE
            entries.append(TimelineEntry(rec, status))
        return entries

    def latest_trend(self, subject_key: str) -> Optional[Trend]:
        calibrated = [r for r in self.scans(subject_key) if r.measurement.calibrated]
        if len(calibrated) < 2:
            return None
        return _compare(calibrated[0], calibrated[1], self.trend_threshold_cm2)

    def summary(self, subject_key: str) -> ProgressSummary:
        scans = self.scans(subject_key)
        latest = scans[0] if scans else None
        trend = self.latest_trend(subject_key)
        recs = recommendations(trend) if trend is not None else []
        notify = (
            latest is not None
            and needs_provider_notification(latest.measurement, self.notify_threshold_cm2)
        )
        return ProgressSummary(subject_key, len(scans), latest, trend, recs, notify)
