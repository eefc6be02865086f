from __future__ import annotations

from typing import Literal, Sequence, Tuple

import numpy as np

from forecast_service.schema_modules.response_schemas import MetricsReport

Z_SCORE_95 = 1.96

Interpretation = Literal["Excellent", "Good", "Fair", "Poor"]
ConfidenceInterpretation = Literal["excellent", "good", "fair", "poor"]


def _paired(actual: Sequence[float], predicted: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    y_true = np.asarray(actual, dtype=float)
    y_pred = np.asarray(predicted, dtype=float)
    if y_true.size == 0 or y_pred.size == 0:
        raise ValueError("Arrays cannot be empty.")
    if y_true.shape != y_pred.shape:
        raise ValueError(
            f"Actual and predicted arrays must have the same length ({y_true.size} != {y_pred.size})."
        )
    return y_true, y_pred


def mse(actual: Sequence[float], predicted: Sequence[float]) -> float:
    y_true, y_pred = _paired(actual, predicted)
    return float(np.mean((y_true - y_pred) ** 2))


def rmse(actual: Sequence[float], predicted: Sequence[float]) -> float:
    return float(np.sqrt(mse(actual, predicted)))


def mae(actual: Sequence[float], predicted: Sequence[float]) -> float:
    y_true, y_pred = _paired(actual, predicted)
    return float(np.mean(np.abs(y_true - y_pred)))


def r_squared(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """
    Coefficient of determination, 1 - SS_res / SS_tot.

    Not clamped: a negative value means the forecast did worse than predicting the mean.
    For a constant actual series SS_tot is zero, so the score is 1.0 on an exact fit and 0.0
    otherwise.
    """

    y_true, y_pred = _paired(actual, predicted)
    ss_res = float(np.sum((y_true - y_pred) ** 2))
    ss_tot = float(np.sum((y_true - np.mean(y_true)) ** 2))
    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0
    return 1.0 - ss_res / ss_tot


def confidence_interval(predicted: Sequence[float], mse_value: float) -> Tuple[np.ndarray, np.ndarray]:
    """95% interval around point predictions using sqrt(mse) as the standard error."""

    y_pred = np.asarray(predicted, dtype=float)
    if y_pred.size == 0:
        raise ValueError("Predictions array cannot be empty.")
    margin = Z_SCORE_95 * np.sqrt(mse_value)
    # counts cannot go below zero
    return np.maximum(0.0, y_pred - margin), y_pred + margin


def interval_coverage(actual: Sequence[float], lower: Sequence[float], upper: Sequence[float]) -> float:
    """Share of actual values that fall inside [lower, upper]."""

    y_true, y_low = _paired(actual, lower)
    _, y_high = _paired(actual, upper)
    return float(np.mean((y_true >= y_low) & (y_true <= y_high)))


def interpret_r_squared(value: float) -> Interpretation:
    if value >= 0.9:
        return "Excellent"
    if value >= 0.8:
        return "Good"
    if value >= 0.6:
        return "Fair"
    return "Poor"


def interpret_confidence(confidence_level: float) -> ConfidenceInterpretation:
    if confidence_level >= 0.9:
        return "excellent"
    if confidence_level >= 0.75:
        return "good"
    if confidence_level >= 0.6:
        return "fair"
    return "poor"


def generate_metrics_report(actual: Sequence[float], predicted: Sequence[float]) -> MetricsReport:
    mse_value = mse(actual, predicted)
    r2 = r_squared(actual, predicted)
    return MetricsReport(
        mse=mse_value,
        rmse=float(np.sqrt(mse_value)),
        mae=mae(actual, predicted),
        r_squared=r2,
        accuracy_pct=r2 * 100.0,
        interpretation=interpret_r_squared(r2),
    )


__all__ = [
    "confidence_interval",
    "generate_metrics_report",
    "interpret_confidence",
    "interpret_r_squared",
    "interval_coverage",
    "mae",
    "mse",
    "r_squared",
    "rmse",
]
