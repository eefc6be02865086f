from __future__ import annotations

from datetime import date
from typing import List, Sequence


class ForecastError(Exception):
    """Base class for every failure raised by the forecast pipeline."""

    code = "forecast_error"
    retryable = False
    stage: str | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        payload = {"error": self.code, "detail": self.message, "retryable": self.retryable}
        if self.stage:
            payload["stage"] = self.stage
        return payload


class ForecastConfigurationError(ForecastError, RuntimeError):
    code = "configuration_error"


# Input-data problems: the caller can fix these by widening the range or waiting for data.


class ForecastInputError(ForecastError, ValueError):
    code = "invalid_input"


class InvalidRangeError(ForecastInputError):
    code = "invalid_range"

    def __init__(self, start: date, end: date) -> None:
        super().__init__(f"Invalid date range: start {start.isoformat()} is after end {end.isoformat()}.")
        self.start = start
        self.end = end


class InsufficientDataError(ForecastInputError):
    code = "insufficient_data"

    def __init__(self, observed_days: int, required_days: int, *, unit: str = "days with completed appointments") -> None:
        super().__init__(
            f"Insufficient historical data: found {observed_days} {unit}, need at least {required_days}."
        )
        self.observed_days = observed_days
        self.required_days = required_days


class SeriesOrderError(ForecastInputError):
    code = "invalid_series"

    def __init__(self, index: int, expected: date, actual: date) -> None:
        super().__init__(
            f"Historical series must be consecutive days in increasing order: point {index} is dated "
            f"{actual.isoformat()}, expected {expected.isoformat()}."
        )
        self.index = index
        self.expected = expected
        self.actual = actual


class InvalidHorizonError(ForecastInputError):
    code = "invalid_horizon"

    def __init__(self, horizon_days: object, maximum: int) -> None:
        super().__init__(f"horizon_days must be an integer between 1 and {maximum}, got {horizon_days!r}.")
        self.horizon_days = horizon_days
        self.maximum = maximum


# Upstream quality problems: the service answered, but the answer cannot be trusted.


class UpstreamResponseError(ForecastError):
    code = "upstream_response_error"


class MalformedResponseError(UpstreamResponseError):
    code = "malformed_response"

    def __init__(self, message: str, excerpt: str | None = None) -> None:
        super().__init__(message)
        self.excerpt = excerpt


class SchemaValidationError(UpstreamResponseError):
    code = "schema_validation_failed"

    def __init__(self, fields: Sequence[str], details: Sequence[str] | None = None) -> None:
        self.fields: List[str] = list(fields)
        self.details: List[str] = list(details or [])
        summary = "; ".join(self.details) if self.details else ", ".join(self.fields)
        super().__init__(f"Forecast response failed schema validation: {summary}")

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["fields"] = self.fields
        return payload


class LengthMismatchError(UpstreamResponseError):
    code = "length_mismatch"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Expected exactly {expected} prediction points, got {actual}.")
        self.expected = expected
        self.actual = actual


class DateSequenceError(UpstreamResponseError):
    code = "date_sequence_invalid"

    def __init__(self, index: int, expected: date, actual: date) -> None:
        super().__init__(
            f"Prediction {index} is dated {actual.isoformat()}, expected {expected.isoformat()}."
        )
        self.index = index
        self.expected = expected
        self.actual = actual


class BoundsViolationError(UpstreamResponseError):
    code = "bounds_violation"

    def __init__(self, violations: Sequence[str]) -> None:
        self.violations: List[str] = list(violations)
        super().__init__("Prediction bounds violated: " + "; ".join(self.violations))

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["fields"] = self.violations
        return payload


class MetricValidationError(UpstreamResponseError):
    code = "metric_validation_failed"

    def __init__(self, metrics: Sequence[str]) -> None:
        self.metrics: List[str] = list(metrics)
        super().__init__("Invalid accuracy metrics: " + "; ".join(self.metrics))

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["fields"] = self.metrics
        return payload


# Transient upstream failures: safe to retry with backoff at the call site.


class UpstreamTimeoutError(ForecastError, TimeoutError):
    code = "upstream_timeout"
    retryable = True

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Forecast service did not respond within {timeout_seconds:g} seconds.")
        self.timeout_seconds = timeout_seconds


class UpstreamServiceError(ForecastError):
    code = "upstream_unavailable"
    retryable = True


__all__ = [
    "ForecastError",
    "ForecastConfigurationError",
    "ForecastInputError",
    "InvalidRangeError",
    "InsufficientDataError",
    "SeriesOrderError",
    "InvalidHorizonError",
    "UpstreamResponseError",
    "MalformedResponseError",
    "SchemaValidationError",
    "LengthMismatchError",
    "DateSequenceError",
    "BoundsViolationError",
    "MetricValidationError",
    "UpstreamTimeoutError",
    "UpstreamServiceError",
]
