from typing import Optional, Sequence

import numpy as np

from ..geometry import valid_scale
from ..wm_types import CalibrationState, Measurement

# Mask values strictly above this are wound pixels
WOUND_THRESHOLD = 0.5


class MaskShapeError(ValueError):
    """Mask does not describe the frame it was computed from."""


def _wound_pixels(mask) -> np.ndarray:
    arr = np.asarray(mask)
    if arr.ndim != 2:
        raise MaskShapeError(f"mask must be 2-D (height, width), got shape {arr.shape}")
    if arr.dtype == bool:
        return arr
    return arr > WOUND_THRESHOLD


def perimeter_pixels(wound: np.ndarray) -> np.ndarray:
    """
    Boolean map of boundary pixels using 4-connectivity.

    A wound pixel is on the boundary when it touches the image border or
    any of its left/right/up/down neighbours is background. Pixels whose
    only background neighbour is diagonal are not counted.
    """
    # Padding with background makes the border rule fall out of the neighbour test
    padded = np.pad(wound, 1, mode="constant", constant_values=False)
    interior = (
        padded[1:-1, :-2]
        & padded[1:-1, 2:]
        & padded[:-2, 1:-1]
        & padded[2:, 1:-1]
    )
    return wound & ~interior


def measure(
    mask,
    calibration: Optional[CalibrationState] = None,
    frame_shape: Optional[Sequence[int]] = None,
) -> Measurement:
    """
    Area and perimeter of the wound region in a binary mask.

    Args:
        mask: 2-D array, bool or numeric (values > 0.5 are wound)
        calibration: current scale, or None for pixel-only results
        frame_shape: shape of the frame the mask was computed from; when
            given, its (height, width) must match the mask

    Returns:
        Measurement; physical fields are None when no usable scale exists

    Raises:
        MaskShapeError: mask is not 2-D or does not match frame_shape
    """
    wound = _wound_pixels(mask)
    if frame_shape is not None:
        fh, fw = int(frame_shape[0]), int(frame_shape[1])
        if wound.shape != (fh, fw):
            raise MaskShapeError(
                f"mask is {wound.shape[1]}x{wound.shape[0]} but frame is {fw}x{fh}"
            )

    area = int(np.count_nonzero(wound))
    perimeter = int(np.count_nonzero(perimeter_pixels(wound))) if area else 0

    if calibration is not None and valid_scale(calibration.pixels_per_cm):
        ppc = float(calibration.pixels_per_cm)
        return Measurement(area, perimeter, area / (ppc * ppc), perimeter / ppc, True)
    return Measurement(area, perimeter, None, None, False)


class MaskMeasure:
    """Strategy: measure a captured mask against the current calibration."""

    def measure(self, mask, calibration: Optional[CalibrationState], frame_shape=None) -> Measurement:
        return measure(mask, calibration, frame_shape)
