from __future__ import annotations

import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

load_dotenv()

MODEL_NAME = os.getenv("FORECAST_MODEL_NAME", "gpt-5.1-2025-11-13")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
REASONING_EFFORT = os.getenv("FORECAST_REASONING_EFFORT", "medium")
MAX_OUTPUT_TOKENS = int(os.getenv("FORECAST_MAX_OUTPUT_TOKENS", "16000"))
TIMEOUT_SECONDS = float(os.getenv("FORECAST_TIMEOUT_SECONDS", "30"))
REPORTING_TIMEZONE = os.getenv("FORECAST_REPORTING_TIMEZONE", "Asia/Manila")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

MIN_HISTORY_DAYS = 7
MAX_HORIZON_DAYS = 90
DEFAULT_HORIZON_DAYS = 30


class ForecastServiceConfig(BaseModel):
    """Explicit settings handed to the forecast pipeline and its upstream client."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    model_name: str = MODEL_NAME
    reasoning_effort: str | None = REASONING_EFFORT
    max_output_tokens: int | None = Field(default=MAX_OUTPUT_TOKENS, gt=0)
    timeout_seconds: float = Field(default=TIMEOUT_SECONDS, gt=0)
    reporting_timezone: str = REPORTING_TIMEZONE
    min_history_days: int = Field(default=MIN_HISTORY_DAYS, ge=1)
    max_horizon_days: int = Field(default=MAX_HORIZON_DAYS, ge=1)

    @field_validator("reporting_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown reporting timezone '{value}'.") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.reporting_timezone)


def load_forecast_config(**overrides) -> ForecastServiceConfig:
    """Build the config object from the environment defaults, applying any overrides."""

    values = {"api_key": OPENAI_API_KEY}
    values.update(overrides)
    return ForecastServiceConfig(**values)


__all__ = [
    "ForecastServiceConfig",
    "load_forecast_config",
    "DEFAULT_HORIZON_DAYS",
    "LOG_LEVEL",
    "MAX_HORIZON_DAYS",
    "MIN_HISTORY_DAYS",
]
