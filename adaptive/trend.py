"""
Trend Analyzer - learning trajectory from mastery history.

Fits an ordinary least-squares line over the history index and classifies
the slope. Velocity rescales the fitted slope to mastery per day using the
elapsed time between the first and last points.
"""

from typing import Iterable, List, Tuple

from .types import LearningTrend, MasteryHistoryEntry, TrendResult

MAX_DATA_POINTS = 30
MIN_DATA_POINTS = 3
PREDICTION_DAYS = 7

# Slope thresholds (mastery per history point)
FAST_SLOPE = 0.02
SLOPE = 0.005

SECONDS_PER_DAY = 86400


def classify_slope(slope: float) -> LearningTrend:
    if slope > FAST_SLOPE:
        return LearningTrend.IMPROVING_FAST
    elif slope > SLOPE:
        return LearningTrend.IMPROVING
    elif slope < -FAST_SLOPE:
        return LearningTrend.DECLINING_FAST
    elif slope < -SLOPE:
        return LearningTrend.DECLINING
    return LearningTrend.STABLE


def _fit_line(values: List[float]) -> Tuple[float, float, float]:
    """Least squares y = slope * i + intercept. Returns (slope, intercept, r2)."""
    n = len(values)
    sum_x = sum_y = sum_xy = sum_x2 = 0.0

    for i, y in enumerate(values):
        sum_x += i
        sum_y += y
        sum_xy += i * y
        sum_x2 += i * i

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0, sum_y / n, 0.0

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    y_mean = sum_y / n
    ss_total = sum((y - y_mean) ** 2 for y in values)
    ss_residual = sum((y - (slope * i + intercept)) ** 2 for i, y in enumerate(values))
    r2 = 1 - ss_residual / ss_total if ss_total > 0 else 0.0

    return slope, intercept, r2


def analyze_trend(history: Iterable[MasteryHistoryEntry]) -> TrendResult:
    """
    Classify a topic's learning trend.

    Points are sorted by timestamp (stable, so equal timestamps keep their
    insertion order) and only the most recent 30 are used. Fewer than 3
    points is always insufficient_data.
    """
    points = sorted(history, key=lambda e: e.timestamp)[-MAX_DATA_POINTS:]
    n = len(points)

    if n == 0:
        return TrendResult(
            trend=LearningTrend.INSUFFICIENT_DATA,
            slope=0.0,
            velocity=0.0,
            r2=0.0,
            data_points=0,
            predicted_mastery_7d=0.5,
        )

    values = [p.mastery for p in points]
    slope, intercept, r2 = _fit_line(values)

    elapsed_days = (points[-1].timestamp - points[0].timestamp).total_seconds() / SECONDS_PER_DAY
    velocity = slope * (n - 1) / elapsed_days if elapsed_days > 0 else 0.0

    fitted_now = slope * (n - 1) + intercept
    predicted = max(0.0, min(1.0, fitted_now + velocity * PREDICTION_DAYS))

    trend = classify_slope(slope) if n >= MIN_DATA_POINTS else LearningTrend.INSUFFICIENT_DATA

    return TrendResult(
        trend=trend,
        slope=slope,
        velocity=velocity,
        r2=r2,
        data_points=n,
        predicted_mastery_7d=predicted,
    )
