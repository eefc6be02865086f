from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.configs.forecast_config import ForecastServiceConfig  # noqa: E402
from forecast_service.schema_modules.input_schemas import ForecastCategory, ForecastContext  # noqa: E402


@pytest.fixture
def config() -> ForecastServiceConfig:
    return ForecastServiceConfig(
        api_key="test-key",
        model_name="test-model",
        timeout_seconds=0.5,
        reporting_timezone="Asia/Manila",
    )


@pytest.fixture
def food_handler_context() -> ForecastContext:
    return ForecastContext(category=ForecastCategory.FOOD_HANDLER)
