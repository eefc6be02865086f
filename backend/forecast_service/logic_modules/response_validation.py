from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from forecast_service.errors import (
    BoundsViolationError,
    DateSequenceError,
    LengthMismatchError,
    MalformedResponseError,
    MetricValidationError,
    SchemaValidationError,
)
from forecast_service.schema_modules.input_schemas import ForecastRequest
from forecast_service.schema_modules.response_schemas import AccuracyMetrics, ForecastResult

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 512
# fences are only stripped at the edges of the text, never inside string values
_OPENING_FENCE = re.compile(r"\A\s*```[A-Za-z]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?[ \t]*```\s*\Z")
_ERROR_METRICS = ("rmse", "mae", "mse")


class ForecastResponseValidator:
    """
    Turns untrusted upstream output into a ForecastResult, or raises the most specific error.

    Checks run in a fixed order (parse, schema, length, dates, bounds, metrics) and stop at the
    first failing stage. Nothing is coerced, clamped or defaulted: a response that needs fixing
    is rejected so the caller can see the service-quality problem.
    """

    def validate(self, raw_response: Any, request: ForecastRequest) -> ForecastResult:
        payload = _parse_payload(raw_response)
        result = _validate_schema(payload)
        _check_length(result, request)
        _check_dates(result, request)
        _check_bounds(result)
        _check_metrics(result.accuracy)

        logger.info(
            "forecast.response.validated",
            extra={
                "predictions": len(result.predictions),
                "trend": result.trend.value,
                "seasonality_detected": result.seasonality_detected,
                "model_version": result.model_version,
            },
        )
        return result


def _parse_payload(raw_response: Any) -> Dict[str, Any]:
    if isinstance(raw_response, Mapping):
        return dict(raw_response)

    if isinstance(raw_response, (bytes, bytearray)):
        try:
            raw_response = bytes(raw_response).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedResponseError("Forecast response is not valid UTF-8 text.") from exc

    if not isinstance(raw_response, str):
        raise MalformedResponseError(
            f"Forecast response must be JSON text or an object, got {type(raw_response).__name__}."
        )

    text = _strip_code_fence(raw_response)
    if not text:
        raise MalformedResponseError("Forecast response is empty.", excerpt="")

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = _parse_embedded_object(text)

    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"Forecast response must be a JSON object, got {type(parsed).__name__}.",
            excerpt=text[:EXCERPT_LENGTH],
        )
    return parsed


def _strip_code_fence(text: str) -> str:
    text = _OPENING_FENCE.sub("", text, count=1)
    return _CLOSING_FENCE.sub("", text, count=1).strip()


def _parse_embedded_object(text: str) -> Any:
    """Retry on the outermost {...} span when the model wrapped its JSON in prose."""

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            pass

    logger.warning("forecast.response.malformed", extra={"excerpt": text[:EXCERPT_LENGTH]})
    raise MalformedResponseError("Forecast response is not parseable JSON.", excerpt=text[:EXCERPT_LENGTH])


def _validate_schema(payload: Dict[str, Any]) -> ForecastResult:
    try:
        return ForecastResult.model_validate(payload)
    except ValidationError as exc:
        fields: List[str] = []
        details: List[str] = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "<root>"
            if location not in fields:
                fields.append(location)
            details.append(f"{location}: {error['msg']}")
        logger.warning("forecast.response.schema_invalid", extra={"fields": fields})
        raise SchemaValidationError(fields, details) from exc


def _check_length(result: ForecastResult, request: ForecastRequest) -> None:
    if len(result.predictions) != request.horizon_days:
        raise LengthMismatchError(request.horizon_days, len(result.predictions))


def _check_dates(result: ForecastResult, request: ForecastRequest) -> None:
    for index, (expected, point) in enumerate(zip(request.expected_dates, result.predictions)):
        if point.date != expected:
            raise DateSequenceError(index, expected, point.date)


def _check_bounds(result: ForecastResult) -> None:
    violations: List[str] = []
    for index, point in enumerate(result.predictions):
        label = f"predictions[{index}] ({point.date.isoformat()})"
        values = (point.predicted_count, point.lower_bound, point.upper_bound, point.confidence_level)
        if not all(math.isfinite(value) for value in values):
            violations.append(f"{label}: values must be finite numbers")
            continue
        if point.predicted_count < 0:
            violations.append(f"{label}: predicted_count {point.predicted_count} is negative")
        if point.lower_bound > point.predicted_count:
            violations.append(
                f"{label}: lower_bound {point.lower_bound} exceeds predicted_count {point.predicted_count}"
            )
        if point.predicted_count > point.upper_bound:
            violations.append(
                f"{label}: predicted_count {point.predicted_count} exceeds upper_bound {point.upper_bound}"
            )
        if not 0.0 <= point.confidence_level <= 1.0:
            violations.append(f"{label}: confidence_level {point.confidence_level} is outside [0, 1]")

    if violations:
        raise BoundsViolationError(violations)


def _check_metrics(accuracy: AccuracyMetrics) -> None:
    problems: List[str] = []
    if not math.isfinite(accuracy.r_squared):
        problems.append(f"r_squared is not finite ({accuracy.r_squared})")
    elif accuracy.r_squared > 1.0:
        problems.append(f"r_squared {accuracy.r_squared} exceeds 1")

    for name in _ERROR_METRICS:
        value = getattr(accuracy, name)
        if not math.isfinite(value):
            problems.append(f"{name} is not finite ({value})")
        elif value < 0:
            problems.append(f"{name} {value} is negative")

    if problems:
        raise MetricValidationError(problems)


__all__ = ["ForecastResponseValidator", "EXCERPT_LENGTH"]
