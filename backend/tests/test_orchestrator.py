from __future__ import annotations

import asyncio
from datetime import date, timedelta

import pytest

from forecast_service.errors import (
    InsufficientDataError,
    InvalidHorizonError,
    LengthMismatchError,
    MalformedResponseError,
    SeriesOrderError,
    UpstreamServiceError,
    UpstreamTimeoutError,
)
from forecast_service.orchestrator import ForecastOrchestrator
from forecast_service.schema_modules.input_schemas import DateRange
from helpers import (
    HISTORY_COUNTS,
    SERIES_START,
    FailingForecastClient,
    FakeForecastClient,
    SlowForecastClient,
    make_records,
    make_response_payload,
    make_series,
)

SERIES_END = SERIES_START + timedelta(days=len(HISTORY_COUNTS) - 1)
HISTORY_RANGE = DateRange(start=SERIES_START, end=SERIES_END)


def test_end_to_end_forecast(config, food_handler_context):
    client = FakeForecastClient()
    orchestrator = ForecastOrchestrator(config, client)

    result = asyncio.run(orchestrator.run(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))

    assert [point.date for point in result.predictions] == [date(2025, 1, 31) + timedelta(days=i) for i in range(7)]
    assert all(p.lower_bound <= p.predicted_count <= p.upper_bound for p in result.predictions)
    assert len(client.calls) == 1
    assert [point.count for point in client.calls[0].series] == HISTORY_COUNTS


def test_run_accepts_plain_tuples_and_mappings(config, food_handler_context):
    records = [record.model_dump() for record in make_records(HISTORY_COUNTS)]
    orchestrator = ForecastOrchestrator(config, FakeForecastClient())

    result = asyncio.run(orchestrator.run(records, (SERIES_START, SERIES_END), 3, food_handler_context))

    assert len(result.predictions) == 3


def test_repeated_runs_are_identical(config, food_handler_context):
    orchestrator = ForecastOrchestrator(config, FakeForecastClient())
    records = make_records(HISTORY_COUNTS)

    first = asyncio.run(orchestrator.run(records, HISTORY_RANGE, 14, food_handler_context))
    second = asyncio.run(orchestrator.run(records, HISTORY_RANGE, 14, food_handler_context))

    assert first == second


def test_insufficient_history_never_reaches_the_client(config, food_handler_context):
    client = FakeForecastClient()
    orchestrator = ForecastOrchestrator(config, client)
    sparse = make_records([3, 0, 0, 2, 0, 4, 0, 0, 1, 5, 0, 2])

    with pytest.raises(InsufficientDataError) as excinfo:
        asyncio.run(orchestrator.run(sparse, (SERIES_START, SERIES_START + timedelta(days=11)), 7, food_handler_context))

    assert excinfo.value.stage == "aggregating"
    assert client.calls == []


def test_invalid_horizon_fails_while_building(config, food_handler_context):
    client = FakeForecastClient()
    orchestrator = ForecastOrchestrator(config, client)

    with pytest.raises(InvalidHorizonError) as excinfo:
        asyncio.run(orchestrator.run(make_records(HISTORY_COUNTS), HISTORY_RANGE, 91, food_handler_context))

    assert excinfo.value.stage == "request_building"
    assert client.calls == []


def test_slow_upstream_times_out(config, food_handler_context):
    fast_timeout = config.model_copy(update={"timeout_seconds": 0.05})
    orchestrator = ForecastOrchestrator(fast_timeout, SlowForecastClient(delay=5))

    with pytest.raises(UpstreamTimeoutError) as excinfo:
        asyncio.run(orchestrator.run(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))

    assert excinfo.value.stage == "calling"
    assert excinfo.value.retryable is True


def test_transport_failure_is_wrapped(config, food_handler_context):
    orchestrator = ForecastOrchestrator(config, FailingForecastClient(ConnectionError("connection reset")))

    with pytest.raises(UpstreamServiceError) as excinfo:
        asyncio.run(orchestrator.run(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))

    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert excinfo.value.stage == "calling"


def test_forecast_errors_from_the_client_pass_through(config, food_handler_context):
    original = UpstreamServiceError("rate limited")
    orchestrator = ForecastOrchestrator(config, FailingForecastClient(original))

    with pytest.raises(UpstreamServiceError) as excinfo:
        asyncio.run(orchestrator.run(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))

    assert excinfo.value is original


def test_garbage_from_upstream_is_a_validation_failure(config, food_handler_context):
    orchestrator = ForecastOrchestrator(config, FakeForecastClient(lambda request: "Sorry, I cannot help."))

    with pytest.raises(MalformedResponseError) as excinfo:
        asyncio.run(orchestrator.run(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))

    assert excinfo.value.stage == "validating"


def test_short_answer_is_rejected(config, food_handler_context):
    def short(request):
        return make_response_payload(request.expected_dates[:-1])

    orchestrator = ForecastOrchestrator(config, FakeForecastClient(short))

    with pytest.raises(LengthMismatchError):
        asyncio.run(orchestrator.run(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))


def test_cancellation_propagates(config, food_handler_context):
    orchestrator = ForecastOrchestrator(config, SlowForecastClient(delay=5))

    async def scenario():
        task = asyncio.create_task(
            orchestrator.run(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context)
        )
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())


def test_concurrent_runs_do_not_interfere(config, food_handler_context):
    client = FakeForecastClient()
    orchestrator = ForecastOrchestrator(config, client)
    records = make_records(HISTORY_COUNTS)

    async def scenario():
        return await asyncio.gather(
            *(orchestrator.run(records, HISTORY_RANGE, horizon, food_handler_context) for horizon in (1, 7, 30))
        )

    results = asyncio.run(scenario())

    assert [len(result.predictions) for result in results] == [1, 7, 30]
    assert len(client.calls) == 3


def test_forecast_series_skips_aggregation(config, food_handler_context):
    orchestrator = ForecastOrchestrator(config, FakeForecastClient())

    result = asyncio.run(orchestrator.forecast_series(make_series(HISTORY_COUNTS), 5, food_handler_context))

    assert result.predictions[0].date == date(2025, 1, 31)


def test_backtest_scores_the_holdout(config, food_handler_context):
    client = FakeForecastClient()
    orchestrator = ForecastOrchestrator(config, client)

    report = asyncio.run(orchestrator.backtest(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))

    assert report.training_days == 23
    assert [point.count for point in report.holdout] == HISTORY_COUNTS[-7:]
    assert report.forecast.predictions[0].date == report.holdout[0].date
    # every prediction is 6.0 against 7, 6, 8, 7, 6, 5, 6
    assert report.metrics.mse == pytest.approx(1.0)
    assert report.metrics.mae == pytest.approx(5 / 7)
    assert client.calls[0].series[-1].date == date(2025, 1, 23)


def test_backtest_rejects_an_invalid_holdout(config, food_handler_context):
    orchestrator = ForecastOrchestrator(config, FakeForecastClient())

    with pytest.raises(InvalidHorizonError):
        asyncio.run(orchestrator.backtest(make_records(HISTORY_COUNTS), HISTORY_RANGE, 0, food_handler_context))


def test_forecast_series_rejects_out_of_order_history(config, food_handler_context):
    client = FakeForecastClient()
    orchestrator = ForecastOrchestrator(config, client)
    series = tuple(reversed(make_series(HISTORY_COUNTS)))

    with pytest.raises(SeriesOrderError) as excinfo:
        asyncio.run(orchestrator.forecast_series(series, 7, food_handler_context))

    assert excinfo.value.stage == "request_building"
    assert client.calls == []


def test_backtest_reports_interval_coverage(config, food_handler_context):
    orchestrator = ForecastOrchestrator(config, FakeForecastClient())

    report = asyncio.run(orchestrator.backtest(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))

    # in-sample mse 1.21 gives 6 +/- 2.156, which holds every held-out count
    assert report.interval_coverage == 1.0
    assert report.interval_lower[0] == pytest.approx(6.0 - 1.96 * 1.1)
    assert report.interval_upper[0] == pytest.approx(6.0 + 1.96 * 1.1)
    assert report.mean_confidence == pytest.approx(0.95)
    assert report.confidence_interpretation == "excellent"


def test_backtest_coverage_with_a_narrow_interval(config, food_handler_context):
    def tight_fit(request):
        payload = make_response_payload(request.expected_dates, confidence=0.7)
        payload["accuracy"]["mse"] = 0.04
        return payload

    orchestrator = ForecastOrchestrator(config, FakeForecastClient(tight_fit))

    report = asyncio.run(orchestrator.backtest(make_records(HISTORY_COUNTS), HISTORY_RANGE, 7, food_handler_context))

    # 6 +/- 0.392 only holds the three held-out days with exactly 6 appointments
    assert report.interval_coverage == pytest.approx(3 / 7)
    assert report.confidence_interpretation == "fair"


def test_backtest_failures_carry_their_stage(config, food_handler_context):
    orchestrator = ForecastOrchestrator(config, FakeForecastClient())
    sparse = make_records([3, 0, 0, 2, 0, 4, 0, 0, 1, 5, 0, 2])

    with pytest.raises(InvalidHorizonError) as bad_holdout:
        asyncio.run(orchestrator.backtest(make_records(HISTORY_COUNTS), HISTORY_RANGE, 0, food_handler_context))
    with pytest.raises(InsufficientDataError) as too_sparse:
        asyncio.run(
            orchestrator.backtest(sparse, (SERIES_START, SERIES_START + timedelta(days=11)), 7, food_handler_context)
        )

    assert bad_holdout.value.stage == "request_building"
    assert too_sparse.value.stage == "aggregating"
