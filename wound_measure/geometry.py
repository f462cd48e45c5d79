"""Planar geometry helpers for QR-based scale calibration."""

import math

import numpy as np

from .wm_types import QuadCorners


def axis_extents(quad: QuadCorners) -> tuple[float, float]:
    """
    Horizontal and vertical extent of a quad, measured from its top-left corner.

    This is an axis-aligned approximation: it ignores rotation, so a tilted
    code reads smaller than it is.

    Returns:
        (width, height) in pixels
    """
    width = abs(quad.top_right.x - quad.top_left.x)
    height = abs(quad.bottom_left.y - quad.top_left.y)
    return width, height


def edge_lengths(quad: QuadCorners) -> np.ndarray:
    """
    Euclidean lengths of the four quad edges.

    Returns:
        (4,) array ordered top, right, bottom, left
    """
    pts = quad.as_array()
    return np.linalg.norm(np.roll(pts, -1, axis=0) - pts, axis=1)


def valid_scale(value) -> bool:
    """True when value is a usable pixels-per-unit factor (finite and > 0)."""
    if value is None:
        return False
    try:
        v = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(v) and v > 0
