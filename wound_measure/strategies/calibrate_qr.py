import logging
from typing import Optional

import numpy as np

from ..geometry import axis_extents, edge_lengths, valid_scale
from ..wm_types import CalibrationState, QRDetection, QuadCorners

logger = logging.getLogger(__name__)

# Printed side length of the QR fiducial placed next to the wound
DEFAULT_QR_SIZE_CM = 2.5

METHODS = ("axis", "edges")


def quad_size_pixels(quad: QuadCorners, method: str = "axis") -> float:
    """
    Side length of the QR code in pixels.

    "axis" averages the horizontal and vertical extents measured from the
    top-left corner (legacy formula, kept for parity with stored scans).
    "edges" averages the true lengths of all four sides, which holds up
    under rotation.
    """
    if method == "axis":
        width, height = axis_extents(quad)
        return (width + height) / 2
    if method == "edges":
        return float(np.mean(edge_lengths(quad)))
    raise ValueError(f"Unknown calibration method: {method!r} (expected one of {METHODS})")


def calibrate(
    quad: Optional[QuadCorners],
    reference_size_cm: float = DEFAULT_QR_SIZE_CM,
    method: str = "axis",
) -> Optional[CalibrationState]:
    """Turn QR corner points into a pixels-per-centimeter scale, or None."""
    if not valid_scale(reference_size_cm):
        raise ValueError(f"reference_size_cm must be finite and > 0, got {reference_size_cm!r}")
    if quad is None:
        return None

    size_px = quad_size_pixels(quad, method)
    with np.errstate(divide="ignore", invalid="ignore"):
        pixels_per_cm = float(size_px) / float(reference_size_cm)

    if not valid_scale(pixels_per_cm):
        logger.debug("degenerate QR quad ignored: size_px=%s", size_px)
        return None
    return CalibrationState(pixels_per_cm, quad)


class QRCalibrate:
    """
    Strategy: calibrate scale from one QR detection per frame.
    A missing detection clears the calibration; there is no smoothing.
    """

    def __init__(self, reference_size_cm: float = DEFAULT_QR_SIZE_CM, method: str = "axis"):
        if method not in METHODS:
            raise ValueError(f"Unknown calibration method: {method!r} (expected one of {METHODS})")
        if not valid_scale(reference_size_cm):
            raise ValueError(f"reference_size_cm must be finite and > 0, got {reference_size_cm!r}")
        self.reference_size_cm = float(reference_size_cm)
        self.method = method

    def apply(self, detection: Optional[QRDetection]) -> Optional[CalibrationState]:
        quad = detection.quad if detection is not None else None
        return calibrate(quad, self.reference_size_cm, self.method)
