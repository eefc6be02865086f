from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import date
from enum import Enum
from typing import Iterable, Protocol, Sequence, Tuple, Union

from core.configs.forecast_config import ForecastServiceConfig
from forecast_service.errors import ForecastError, UpstreamServiceError, UpstreamTimeoutError
from forecast_service.logic_modules.aggregation import RecordLike, TimeSeriesAggregator
from forecast_service.logic_modules.metrics import (
    confidence_interval,
    generate_metrics_report,
    interpret_confidence,
    interval_coverage,
)
from forecast_service.logic_modules.request_builder import ForecastRequestBuilder
from forecast_service.logic_modules.response_validation import ForecastResponseValidator
from forecast_service.schema_modules.input_schemas import (
    DateRange,
    ForecastContext,
    ForecastRequest,
    HistoricalPoint,
)
from forecast_service.schema_modules.response_schemas import BacktestReport, ForecastResult

logger = logging.getLogger(__name__)

DateRangeLike = Union[DateRange, Tuple[date, date]]


class ForecastStage(str, Enum):
    AGGREGATING = "aggregating"
    REQUEST_BUILDING = "request_building"
    CALLING = "calling"
    VALIDATING = "validating"
    DONE = "done"
    FAILED = "failed"


class ForecastModelClient(Protocol):
    """Upstream service that turns a ForecastRequest into raw (untrusted) response text."""

    async def complete(self, request: ForecastRequest) -> str: ...


class _RunTrace:
    """Per-run stage bookkeeping. Lives only for the duration of one run."""

    def __init__(self, context: ForecastContext) -> None:
        self.run_id = uuid.uuid4().hex[:12]
        self.category = context.category.value
        self.stage = ForecastStage.AGGREGATING
        self.started = time.perf_counter()

    def advance(self, stage: ForecastStage) -> None:
        if stage is self.stage:
            return
        self.stage = stage
        logger.info(
            "forecast.orchestrator.stage",
            extra={"run_id": self.run_id, "category": self.category, "stage": stage.value},
        )

    def fail(self, exc: ForecastError) -> None:
        exc.stage = self.stage.value
        self.advance(ForecastStage.FAILED)
        logger.warning(
            "forecast.orchestrator.failed run_id=%s stage=%s error=%s",
            self.run_id,
            exc.stage,
            exc.code,
        )

    @property
    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)


class ForecastOrchestrator:
    """
    Runs Aggregating -> RequestBuilding -> Calling -> Validating -> Done for one forecast.

    Stages run strictly in sequence and every stage error reaches the caller unchanged, so
    "not enough history", "upstream returned garbage" and "upstream timed out" stay distinct.
    The upstream call is never retried here. Instances hold no per-run state and may serve
    concurrent runs.
    """

    def __init__(
        self,
        config: ForecastServiceConfig,
        client: ForecastModelClient,
        *,
        aggregator: TimeSeriesAggregator | None = None,
        builder: ForecastRequestBuilder | None = None,
        validator: ForecastResponseValidator | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.aggregator = aggregator or TimeSeriesAggregator(
            reporting_timezone=config.tzinfo, min_active_days=config.min_history_days
        )
        self.builder = builder or ForecastRequestBuilder(
            min_history_days=config.min_history_days, max_horizon_days=config.max_horizon_days
        )
        self.validator = validator or ForecastResponseValidator()

    async def run(
        self,
        raw_appointments: Iterable[RecordLike],
        date_range: DateRangeLike,
        horizon_days: int,
        context: ForecastContext,
    ) -> ForecastResult:
        trace = _RunTrace(context)
        start, end = _unpack_range(date_range)
        try:
            series = self.aggregator.aggregate(raw_appointments, start, end)
            return await self._forecast(series, horizon_days, context, trace)
        except ForecastError as exc:
            trace.fail(exc)
            raise

    async def forecast_series(
        self,
        series: Sequence[HistoricalPoint],
        horizon_days: int,
        context: ForecastContext,
    ) -> ForecastResult:
        """Run the pipeline from an already aggregated series."""

        trace = _RunTrace(context)
        try:
            return await self._forecast(series, horizon_days, context, trace)
        except ForecastError as exc:
            trace.fail(exc)
            raise

    async def backtest(
        self,
        raw_appointments: Iterable[RecordLike],
        date_range: DateRangeLike,
        holdout_days: int,
        context: ForecastContext,
    ) -> BacktestReport:
        """
        Forecast the last `holdout_days` of the range from the history before it and score the
        forecast against the counts that were actually observed. The 95% interval is built from the
        in-sample mse the upstream model reported, and its coverage of the held-out counts is included.
        """

        trace = _RunTrace(context)
        start, end = _unpack_range(date_range)
        try:
            series = self.aggregator.aggregate(raw_appointments, start, end)
            trace.advance(ForecastStage.REQUEST_BUILDING)
            self.builder.check_horizon(holdout_days)
            training, holdout = series[:-holdout_days], series[-holdout_days:]
            forecast = await self._forecast(training, holdout_days, context, trace)
        except ForecastError as exc:
            trace.fail(exc)
            raise

        actual = [point.count for point in holdout]
        predicted = [point.predicted_count for point in forecast.predictions]
        metrics = generate_metrics_report(actual, predicted)
        lower, upper = confidence_interval(predicted, forecast.accuracy.mse)
        coverage = interval_coverage(actual, lower, upper)
        mean_confidence = sum(point.confidence_level for point in forecast.predictions) / len(forecast.predictions)

        logger.info(
            "forecast.orchestrator.backtest.completed",
            extra={
                "category": context.category.value,
                "training_days": len(training),
                "holdout_days": holdout_days,
                "r_squared": metrics.r_squared,
                "interpretation": metrics.interpretation,
                "interval_coverage": coverage,
            },
        )
        return BacktestReport(
            training_days=len(training),
            holdout=holdout,
            forecast=forecast,
            metrics=metrics,
            interval_lower=tuple(float(value) for value in lower),
            interval_upper=tuple(float(value) for value in upper),
            interval_coverage=coverage,
            mean_confidence=mean_confidence,
            confidence_interpretation=interpret_confidence(mean_confidence),
        )

    async def _forecast(
        self,
        series: Sequence[HistoricalPoint],
        horizon_days: int,
        context: ForecastContext,
        trace: _RunTrace,
    ) -> ForecastResult:
        trace.advance(ForecastStage.REQUEST_BUILDING)
        request = self.builder.build(series, horizon_days, context)

        trace.advance(ForecastStage.CALLING)
        raw_response = await self._call_upstream(request)

        # No awaits past this point: once the response is in hand, validation always completes.
        trace.advance(ForecastStage.VALIDATING)
        result = self.validator.validate(raw_response, request)

        trace.advance(ForecastStage.DONE)
        logger.info(
            "forecast.orchestrator.completed",
            extra={
                "run_id": trace.run_id,
                "category": context.category.value,
                "horizon_days": horizon_days,
                "elapsed_ms": trace.elapsed_ms,
            },
        )
        return result

    async def _call_upstream(self, request: ForecastRequest) -> str:
        timeout = self.config.timeout_seconds
        try:
            return await asyncio.wait_for(self.client.complete(request), timeout=timeout)
        except ForecastError:
            raise
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(timeout) from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("Forecast service call failed: %s", exc)
            raise UpstreamServiceError(f"Forecast service call failed: {type(exc).__name__}: {exc}") from exc


def _unpack_range(date_range: DateRangeLike) -> Tuple[date, date]:
    if isinstance(date_range, DateRange):
        return date_range.start, date_range.end
    start, end = date_range
    return start, end


__all__ = ["ForecastOrchestrator", "ForecastModelClient", "ForecastStage"]
