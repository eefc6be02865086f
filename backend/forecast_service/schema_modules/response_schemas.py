from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictBool, StrictFloat, StrictStr

from .input_schemas import HistoricalPoint


def _require_iso_date(value: Any) -> Any:
    # Only ISO strings or real dates; epoch numbers are not accepted as dates.
    if isinstance(value, dt.datetime):
        raise ValueError("expected a calendar date, got a timestamp")
    if isinstance(value, (dt.date, str)):
        return value
    raise ValueError("expected an ISO-8601 date string (YYYY-MM-DD)")


IsoDate = Annotated[dt.date, BeforeValidator(_require_iso_date)]


class ForecastTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class PredictionPoint(BaseModel):
    """One forecast day with its confidence interval."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    date: IsoDate
    predicted_count: StrictFloat
    lower_bound: StrictFloat
    upper_bound: StrictFloat
    confidence_level: StrictFloat


class AccuracyMetrics(BaseModel):
    """Fit quality reported by the upstream model. r_squared may be negative for poor fits."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    r_squared: StrictFloat
    rmse: StrictFloat
    mae: StrictFloat
    mse: StrictFloat


class ForecastResult(BaseModel):
    """
    Validated forecast handed to the presentation layer.

    The same model describes the JSON document the upstream service is asked to return, so field
    names are identical on both sides of the pipeline (snake_case).
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    predictions: Tuple[PredictionPoint, ...]
    model_version: StrictStr = Field(min_length=1)
    trend: ForecastTrend
    seasonality_detected: StrictBool
    accuracy: AccuracyMetrics


class MetricsReport(BaseModel):
    """Error metrics computed locally from actual vs. predicted counts."""

    model_config = ConfigDict(frozen=True)

    mse: float
    rmse: float
    mae: float
    r_squared: float
    accuracy_pct: float
    interpretation: Literal["Excellent", "Good", "Fair", "Poor"]


class BacktestReport(BaseModel):
    """Forecast of a held-out tail of history, scored against what actually happened."""

    model_config = ConfigDict(frozen=True)

    training_days: int
    holdout: Tuple[HistoricalPoint, ...]
    forecast: ForecastResult
    metrics: MetricsReport
    interval_lower: Tuple[float, ...] = Field(description="95% lower bound from the in-sample mse reported upstream.")
    interval_upper: Tuple[float, ...]
    interval_coverage: float = Field(ge=0, le=1, description="Share of held-out counts inside the interval.")
    mean_confidence: float
    confidence_interpretation: Literal["excellent", "good", "fair", "poor"]


class ForecastFailure(BaseModel):
    """Error body returned by the HTTP surface."""

    error: str
    detail: str
    retryable: bool = False
    stage: Optional[str] = None
    fields: Optional[List[str]] = None


__all__ = [
    "AccuracyMetrics",
    "BacktestReport",
    "ForecastFailure",
    "ForecastResult",
    "ForecastTrend",
    "IsoDate",
    "MetricsReport",
    "PredictionPoint",
]
