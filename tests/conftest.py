import numpy as np
import pytest

from wound_measure.wm_types import (
    CalibrationState,
    Measurement,
    QRDetection,
    QuadCorners,
    ScanRecord,
)


@pytest.fixture
def square_quad():
    """50px square QR code with its top-left corner at (100, 100)."""
    return QuadCorners.from_points([(100, 100), (150, 100), (150, 150), (100, 150)])


@pytest.fixture
def square_detection(square_quad):
    return QRDetection(square_quad, "patient-card")


@pytest.fixture
def calibration_20(square_quad):
    return CalibrationState(20.0, square_quad)


@pytest.fixture
def block_mask():
    """20x30 frame mask with a 10x10 wound block."""
    mask = np.zeros((20, 30), dtype=np.uint8)
    mask[5:15, 10:20] = 1
    return mask


def _make_record(subject, ts, area_cm2, calibrated=True, record_id=None):
    if calibrated:
        m = Measurement(int(area_cm2 * 400), 36, area_cm2, 1.8, True)
    else:
        m = Measurement(100, 36, None, None, False)
    return ScanRecord(
        id=record_id or f"{subject}-{ts}",
        subject_key=subject,
        timestamp=float(ts),
        measurement=m,
        image_ref=None,
        calibration_scale=20.0 if calibrated else None,
    )


@pytest.fixture
def make_record():
    return _make_record
