"""QR-calibrated wound area and perimeter measurement."""

from .strategies.calibrate_qr import DEFAULT_QR_SIZE_CM, calibrate
from .strategies.classify_trend import classify
from .strategies.measure_mask import MaskShapeError, measure
from .wm_types import CalibrationState, Measurement, Point2D, QuadCorners, ScanRecord, Trend

__all__ = [
    "DEFAULT_QR_SIZE_CM",
    "CalibrationState",
    "MaskShapeError",
    "Measurement",
    "Point2D",
    "QuadCorners",
    "ScanRecord",
    "Trend",
    "calibrate",
    "classify",
    "measure",
]
