from __future__ import annotations

import textwrap
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Sequence

from forecast_service.schema_modules.input_schemas import ForecastContext, HistoricalPoint


@lru_cache(maxsize=1)
def get_output_guidelines() -> str:
    """Load the structured output contract the upstream model must follow."""

    guideline_path = Path(__file__).parent / "structured_output" / "forecast_guidelines.md"
    return guideline_path.read_text(encoding="utf-8")


@lru_cache(maxsize=1)
def get_system_prompt() -> str:
    """
    Compose the system prompt for the forecasting model.

    The persona asks for seasonal ARIMA style reasoning over daily counts and embeds the output
    contract so every response can be validated field by field.
    """

    base_instructions = textwrap.dedent(
        """
        You are a time-series analyst producing SARIMA (seasonal autoregressive integrated moving
        average) forecasts for a municipal health office.

        Core rules:
        - Respond with JSON only. Never prepend or append prose, explanations, or code fences.
        - Base every number on the supplied history. Do not invent external events.
        - Look for weekly seasonality (weekday/weekend effects), overall trend, and volatility.
        - Produce exactly the requested number of daily predictions on exactly the requested dates.
        - Keep lower_bound <= predicted_count <= upper_bound for every day and never predict
          negative counts.
        - Report accuracy metrics for the in-sample fit honestly; a poor fit is acceptable, a
          fabricated one is not.
        """
    ).strip()

    return f"{base_instructions}\n\n{get_output_guidelines().strip()}"


def render_series(series: Sequence[HistoricalPoint], unit: str) -> str:
    return "\n".join(f"{point.date.isoformat()}: {point.count} {unit}" for point in series)


def render_user_prompt(
    *,
    series: Sequence[HistoricalPoint],
    horizon_days: int,
    context: ForecastContext,
    first_date: date,
    last_date: date,
) -> str:
    total = sum(point.count for point in series)
    average = total / len(series)
    active_days = sum(1 for point in series if point.count > 0)

    return textwrap.dedent(
        f"""
        # Task
        Forecast daily {context.label} counts ({context.unit} per day) for {context.area}.
        Generate exactly {horizon_days} predictions, one per day, from {first_date.isoformat()}
        through {last_date.isoformat()} inclusive.

        # Historical data ({len(series)} days, {series[0].date.isoformat()} to {series[-1].date.isoformat()})
        {{history}}

        # Statistics
        - Total {context.unit}: {total}
        - Average per day: {average:.2f}
        - Days with activity: {active_days}
        - Data points: {len(series)}
        """
    ).strip().replace("{history}", render_series(series, context.unit))


__all__ = ["get_system_prompt", "get_output_guidelines", "render_series", "render_user_prompt"]
