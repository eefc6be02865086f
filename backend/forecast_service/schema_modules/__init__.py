from .input_schemas import (
    AppointmentRecord,
    BacktestApiRequest,
    DateRange,
    ForecastApiRequest,
    ForecastCategory,
    ForecastContext,
    ForecastRequest,
    HistoricalPoint,
    PromptMessage,
)
from .response_schemas import (
    AccuracyMetrics,
    BacktestReport,
    ForecastFailure,
    ForecastResult,
    ForecastTrend,
    MetricsReport,
    PredictionPoint,
)

__all__ = [
    "AccuracyMetrics",
    "AppointmentRecord",
    "BacktestApiRequest",
    "BacktestReport",
    "DateRange",
    "ForecastApiRequest",
    "ForecastCategory",
    "ForecastContext",
    "ForecastFailure",
    "ForecastRequest",
    "ForecastResult",
    "ForecastTrend",
    "HistoricalPoint",
    "MetricsReport",
    "PredictionPoint",
    "PromptMessage",
]
