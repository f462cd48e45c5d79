import cv2
import numpy as np
from typing import Optional

from ..wm_types import Frame, QRDetection, QuadCorners


class QRDetect:
    """
    Strategy: find the QR fiducial in a frame.
    Returns one QRDetection (corners in TL, TR, BR, BL order plus the decoded
    payload, possibly empty) or None when no code is located.
    """
    def __init__(self, require_payload: bool = False):
        self.require_payload = require_payload
        self._detector = cv2.QRCodeDetector()

    def detect(self, f: Frame) -> Optional[QRDetection]:
        data, points, _straight = self._detector.detectAndDecode(f.image)
        if points is None:
            return None
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if pts.shape[0] != 4:
            return None
        if self.require_payload and not data:
            return None
        return QRDetection(QuadCorners.from_points(pts), data or "")
