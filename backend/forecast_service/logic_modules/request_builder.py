from __future__ import annotations

import logging
from datetime import timedelta
from typing import Sequence

from core.configs.forecast_config import MAX_HORIZON_DAYS, MIN_HISTORY_DAYS
from forecast_service.errors import InsufficientDataError, InvalidHorizonError, SeriesOrderError
from forecast_service.logic_modules.forecast_prompt import get_system_prompt, render_user_prompt
from forecast_service.schema_modules.input_schemas import (
    ForecastContext,
    ForecastRequest,
    HistoricalPoint,
    PromptMessage,
)

logger = logging.getLogger(__name__)


class ForecastRequestBuilder:
    """Validates the forecast parameters and renders the prompt sent upstream. Performs no I/O."""

    def __init__(self, *, min_history_days: int = MIN_HISTORY_DAYS, max_horizon_days: int = MAX_HORIZON_DAYS) -> None:
        self.min_history_days = min_history_days
        self.max_horizon_days = max_horizon_days

    def build(
        self,
        series: Sequence[HistoricalPoint],
        horizon_days: int,
        context: ForecastContext,
    ) -> ForecastRequest:
        if len(series) < self.min_history_days:
            raise InsufficientDataError(len(series), self.min_history_days, unit="historical data points")

        self.check_horizon(horizon_days)

        points = tuple(series)
        check_consecutive_days(points)
        draft = ForecastRequest(series=points, horizon_days=horizon_days, context=context)
        expected = draft.expected_dates

        user_prompt = render_user_prompt(
            series=points,
            horizon_days=horizon_days,
            context=context,
            first_date=expected[0],
            last_date=expected[-1],
        )
        request = draft.model_copy(
            update={
                "messages": (
                    PromptMessage(role="system", content=get_system_prompt()),
                    PromptMessage(role="user", content=user_prompt),
                )
            }
        )

        logger.info(
            "forecast.request.built",
            extra={
                "category": context.category.value,
                "history_points": len(points),
                "horizon_days": horizon_days,
                "first_forecast_date": expected[0].isoformat(),
            },
        )
        return request

    def check_horizon(self, horizon_days: int) -> None:
        # bool is an int subclass; True must not pass as a one-day horizon.
        if isinstance(horizon_days, bool) or not isinstance(horizon_days, int):
            raise InvalidHorizonError(horizon_days, self.max_horizon_days)
        if not 1 <= horizon_days <= self.max_horizon_days:
            raise InvalidHorizonError(horizon_days, self.max_horizon_days)


def check_consecutive_days(series: Sequence[HistoricalPoint]) -> None:
    """Raise SeriesOrderError unless every point is dated the day after the previous one."""

    for index in range(1, len(series)):
        expected = series[index - 1].date + timedelta(days=1)
        if series[index].date != expected:
            raise SeriesOrderError(index, expected, series[index].date)


__all__ = ["ForecastRequestBuilder", "check_consecutive_days"]
