from __future__ import annotations

from functools import lru_cache

from core.configs.forecast_config import load_forecast_config
from forecast_service.logic_modules.aggregation import records_for_context
from forecast_service.orchestrator import ForecastOrchestrator
from forecast_service.schema_modules.input_schemas import BacktestApiRequest, ForecastApiRequest
from forecast_service.schema_modules.response_schemas import BacktestReport, ForecastResult
from llm_service.logic_modules.open_ai_client import OpenAIForecastClient

__all__ = ["get_orchestrator", "run_forecast", "run_backtest"]


@lru_cache(maxsize=1)
def get_orchestrator() -> ForecastOrchestrator:
    """Shared orchestrator wired to the OpenAI-backed forecast client."""

    config = load_forecast_config()
    return ForecastOrchestrator(config, OpenAIForecastClient(config))


async def run_forecast(payload: ForecastApiRequest, orchestrator: ForecastOrchestrator) -> ForecastResult:
    """
    High-level entrypoint:
    1. Optionally narrow the records to the requested category.
    2. Aggregate, build the request, call the forecast service and validate its answer.
    """

    records = records_for_context(payload.records, payload.context) if payload.filter_by_category else payload.records
    return await orchestrator.run(records, payload.date_range, payload.horizon_days, payload.context)


async def run_backtest(payload: BacktestApiRequest, orchestrator: ForecastOrchestrator) -> BacktestReport:
    records = records_for_context(payload.records, payload.context) if payload.filter_by_category else payload.records
    return await orchestrator.backtest(records, payload.date_range, payload.holdout_days, payload.context)
