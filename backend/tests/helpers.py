from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Sequence, Tuple
from zoneinfo import ZoneInfo

from forecast_service.schema_modules.input_schemas import AppointmentRecord, ForecastRequest, HistoricalPoint

MANILA = ZoneInfo("Asia/Manila")
SERIES_START = date(2025, 1, 1)

# 30 consecutive days, no zero-count days.
HISTORY_COUNTS = [
    5, 5, 6, 4, 7, 5, 5,
    6, 6, 7, 5, 8, 6, 6,
    5, 7, 6, 5, 8, 6, 7,
    6, 5, 7, 6, 8, 7, 6,
    5, 6,
]


def make_records(counts: Sequence[int], start: date = SERIES_START, service_category: int | str = 12) -> List[AppointmentRecord]:
    records: List[AppointmentRecord] = []
    for offset, count in enumerate(counts):
        day = start + timedelta(days=offset)
        for index in range(count):
            completed = datetime.combine(day, time(8 + index % 9, 15), tzinfo=MANILA)
            records.append(AppointmentRecord(completed_at=completed, service_category=service_category))
    return records


def make_series(counts: Sequence[int], start: date = SERIES_START) -> Tuple[HistoricalPoint, ...]:
    return tuple(
        HistoricalPoint(date=start + timedelta(days=offset), count=count) for offset, count in enumerate(counts)
    )


def make_response_payload(
    dates: Sequence[date],
    *,
    predicted: float = 6.0,
    spread: float = 2.0,
    confidence: float = 0.95,
) -> dict:
    return {
        "predictions": [
            {
                "date": day.isoformat(),
                "predicted_count": predicted,
                "lower_bound": predicted - spread,
                "upper_bound": predicted + spread,
                "confidence_level": confidence,
            }
            for day in dates
        ],
        "model_version": "LLM-SARIMA-v1.0",
        "trend": "stable",
        "seasonality_detected": True,
        "accuracy": {"r_squared": 0.82, "rmse": 1.1, "mae": 0.9, "mse": 1.21},
    }


def valid_response_text(request: ForecastRequest) -> str:
    return json.dumps(make_response_payload(request.expected_dates))


class FakeForecastClient:
    """In-process stand-in for the upstream service; answers from the request it receives."""

    def __init__(self, responder: Callable[[ForecastRequest], str] = valid_response_text) -> None:
        self.responder = responder
        self.calls: List[ForecastRequest] = []

    async def complete(self, request: ForecastRequest) -> str:
        self.calls.append(request)
        return self.responder(request)


class SlowForecastClient(FakeForecastClient):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    async def complete(self, request: ForecastRequest) -> str:
        self.calls.append(request)
        await asyncio.sleep(self.delay)
        return self.responder(request)


class FailingForecastClient(FakeForecastClient):
    def __init__(self, exc: Exception) -> None:
        super().__init__()
        self.exc = exc

    async def complete(self, request: ForecastRequest) -> str:
        self.calls.append(request)
        raise self.exc
