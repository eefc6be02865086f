from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from forecast_service.api_modules.forecast_api import get_orchestrator, run_backtest, run_forecast
from forecast_service.errors import (
    ForecastConfigurationError,
    ForecastError,
    ForecastInputError,
    UpstreamResponseError,
    UpstreamTimeoutError,
)
from forecast_service.orchestrator import ForecastOrchestrator
from forecast_service.schema_modules.input_schemas import BacktestApiRequest, ForecastApiRequest
from forecast_service.schema_modules.response_schemas import BacktestReport, ForecastFailure, ForecastResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forecasts", tags=["forecasts"])

ERROR_RESPONSES = {
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ForecastFailure, "description": "Not enough usable history or invalid parameters."},
    status.HTTP_502_BAD_GATEWAY: {"model": ForecastFailure, "description": "Forecast service returned an unusable answer."},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ForecastFailure, "description": "Forecast service unreachable."},
    status.HTTP_504_GATEWAY_TIMEOUT: {"model": ForecastFailure, "description": "Forecast service timed out."},
}


def status_for_error(exc: ForecastError) -> int:
    if isinstance(exc, ForecastInputError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, UpstreamResponseError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, UpstreamTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, ForecastConfigurationError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_503_SERVICE_UNAVAILABLE


async def forecast_error_handler(request: Request, exc: ForecastError) -> JSONResponse:
    status_code = status_for_error(exc)
    logger.info(
        "forecast_routing.error",
        extra={"path": request.url.path, "error": exc.code, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@router.post("", response_model=ForecastResult, responses=ERROR_RESPONSES)
async def forecast_endpoint(
    payload: ForecastApiRequest,
    orchestrator: ForecastOrchestrator = Depends(get_orchestrator),
) -> ForecastResult:
    """Aggregate the supplied appointments and return a validated demand forecast."""

    return await run_forecast(payload, orchestrator)


@router.post("/backtest", response_model=BacktestReport, responses=ERROR_RESPONSES)
async def backtest_endpoint(
    payload: BacktestApiRequest,
    orchestrator: ForecastOrchestrator = Depends(get_orchestrator),
) -> BacktestReport:
    """Forecast the trailing holdout window and score it against observed counts."""

    return await run_backtest(payload, orchestrator)


__all__ = ["router", "forecast_error_handler", "status_for_error"]
