from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Optional

import numpy as np


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float


@dataclass(frozen=True)
class QuadCorners:
    """Corners of a detected QR code, clockwise in image coordinates."""

    top_left: Point2D
    top_right: Point2D
    bottom_right: Point2D
    bottom_left: Point2D

    @classmethod
    def from_points(cls, points) -> "QuadCorners":
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if pts.shape[0] != 4:
            raise ValueError(f"expected 4 corner points, got {pts.shape[0]}")
        return cls(*(Point2D(float(x), float(y)) for x, y in pts))

    def as_array(self) -> np.ndarray:
        return np.array(
            [[p.x, p.y] for p in (self.top_left, self.top_right, self.bottom_right, self.bottom_left)],
            dtype=np.float64,
        )


@dataclass(frozen=True)
class QRDetection:
    quad: QuadCorners
    data: str = ""


@dataclass(frozen=True)
class CalibrationState:
    pixels_per_cm: float
    source_quad: QuadCorners


@dataclass(frozen=True)
class Measurement:
    area_pixels: int
    perimeter_pixels: int
    area_cm2: Optional[float]  # None = uncalibrated
    perimeter_cm: Optional[float]
    calibrated: bool

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Measurement":
        area_cm2 = raw.get("area_cm2")
        perimeter_cm = raw.get("perimeter_cm")
        return cls(
            int(raw["area_pixels"]),
            int(raw["perimeter_pixels"]),
            None if area_cm2 is None else float(area_cm2),
            None if perimeter_cm is None else float(perimeter_cm),
            bool(raw.get("calibrated", False)),
        )


@dataclass(frozen=True)
class ScanRecord:
    id: str
    subject_key: str
    timestamp: float  # unix seconds
    measurement: Measurement
    image_ref: Optional[str]
    qr_data: Optional[str] = None
    calibration_scale: Optional[float] = None
    provider_id: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["measurement"] = self.measurement.as_dict()
        return d

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ScanRecord":
        scale = raw.get("calibration_scale")
        return cls(
            id=str(raw["id"]),
            subject_key=str(raw["subject_key"]),
            timestamp=float(raw["timestamp"]),
            measurement=Measurement.from_dict(raw["measurement"]),
            image_ref=raw.get("image_ref"),
            qr_data=raw.get("qr_data"),
            calibration_scale=None if scale is None else float(scale),
            provider_id=raw.get("provider_id"),
        )


class Trend(str, Enum):
    IMPROVING = "improving"
    CONCERNING = "concerning"
    STABLE = "stable"


@dataclass
class Frame:
    idx: int
    ts_iso: str
    image: Any  # numpy array
