"""Printable QR fiducials of a known physical size."""

import cv2
import numpy as np

from .strategies.calibrate_qr import DEFAULT_QR_SIZE_CM

CM_PER_INCH = 2.54


def fiducial_size_px(size_cm: float = DEFAULT_QR_SIZE_CM, dpi: int = 300) -> int:
    return int(round(size_cm / CM_PER_INCH * dpi))


def create_qr_fiducial(
    payload: str,
    size_cm: float = DEFAULT_QR_SIZE_CM,
    dpi: int = 300,
    margin_px: int = 40,
) -> np.ndarray:
    """Render a QR code whose finder-pattern extent prints at size_cm.

    Args:
        payload: text encoded in the code (e.g. a subject key)
        size_cm: printed side length of the code itself, quiet zone excluded
        dpi: print resolution
        margin_px: white border added around the code

    Returns:
        Grayscale uint8 image
    """
    if size_cm <= 0 or dpi <= 0:
        raise ValueError("size_cm and dpi must be > 0")
    encoder = cv2.QRCodeEncoder.create()
    raw = encoder.encode(payload)
    if raw is None or raw.size == 0:
        raise RuntimeError(f"QR encoding failed for payload {payload!r}")

    # Crop the encoder's quiet zone so the code spans exactly size_cm
    ys, xs = np.where(raw < 128)
    code = raw[ys.min():ys.max() + 1, xs.min():xs.max() + 1]

    side = fiducial_size_px(size_cm, dpi)
    code = cv2.resize(code, (side, side), interpolation=cv2.INTER_NEAREST)
    return cv2.copyMakeBorder(
        code, margin_px, margin_px, margin_px, margin_px,
        cv2.BORDER_CONSTANT, value=255,
    )
