from dataclasses import dataclass

from ..wm_types import Measurement, Trend

# Absolute change in cm^2 between consecutive scans
DEFAULT_TREND_THRESHOLD_CM2 = 0.1
DEFAULT_NOTIFY_THRESHOLD_CM2 = 5.0


@dataclass(frozen=True)
class Recommendation:
    title: str
    text: str


_BASE = (
    Recommendation(
        "Daily Care",
        "Continue gentle cleaning with saline solution and apply prescribed dressing.",
    ),
    Recommendation(
        "Monitor Signs",
        "Watch for increased redness, swelling, warmth, or unusual discharge.",
    ),
)

_BY_TREND = {
    Trend.IMPROVING: (
        Recommendation(
            "Positive Progress",
            "Wound is healing well. Continue current treatment plan and maintain good nutrition.",
        ),
        Recommendation(
            "Activity Level",
            "You may gradually increase activity as tolerated, avoiding strain on the wound area.",
        ),
    ),
    Trend.CONCERNING: (
        Recommendation(
            "Contact Provider",
            "Wound size has increased. Contact your healthcare provider for evaluation.",
        ),
        Recommendation(
            "Enhanced Care",
            "Consider more frequent dressing changes and avoid activities that stress the wound.",
        ),
    ),
    Trend.STABLE: (
        Recommendation(
            "Steady Progress",
            "Wound size is stable. Continue current care routine and maintain follow-up schedule.",
        ),
    ),
}


def classify(
    current: float,
    previous: float,
    threshold_cm2: float = DEFAULT_TREND_THRESHOLD_CM2,
) -> Trend:
    """
    Compare two wound areas (cm^2) by absolute change.

    Small wounds are flagged on small absolute growth; there is no
    percentage rule.
    """
    delta = current - previous
    if delta < -threshold_cm2:
        return Trend.IMPROVING
    if delta > threshold_cm2:
        return Trend.CONCERNING
    return Trend.STABLE


def recommendations(trend: Trend) -> list[Recommendation]:
    return [*_BASE, *_BY_TREND[Trend(trend)]]


def needs_provider_notification(
    measurement: Measurement,
    threshold_cm2: float = DEFAULT_NOTIFY_THRESHOLD_CM2,
) -> bool:
    if not measurement.calibrated or measurement.area_cm2 is None:
        return False
    return measurement.area_cm2 > threshold_cm2
