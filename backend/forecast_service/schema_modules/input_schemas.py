from __future__ import annotations

import datetime as dt
from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.configs.forecast_config import DEFAULT_HORIZON_DAYS


class ForecastCategory(str, Enum):
    FOOD_HANDLER = "food_handler"
    NON_FOOD = "non_food"
    PINK = "pink"
    DISEASE = "disease"


CATEGORY_LABELS = {
    ForecastCategory.FOOD_HANDLER: "Food Handler health card",
    ForecastCategory.NON_FOOD: "Non-Food Handler health card",
    ForecastCategory.PINK: "Pink (service/clinical) health card",
    ForecastCategory.DISEASE: "disease case",
}


class AppointmentRecord(BaseModel):
    """A completed appointment as handed over by the persistence layer."""

    model_config = ConfigDict(frozen=True)

    completed_at: datetime
    service_category: int | str


class DateRange(BaseModel):
    """Inclusive calendar range. Ordering is checked by the aggregator, not here."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class ForecastContext(BaseModel):
    """What is being forecast: a health-card category, or a disease for surveillance."""

    model_config = ConfigDict(frozen=True)

    category: ForecastCategory
    subject: Optional[str] = Field(
        default=None, description="Disease name when forecasting case counts, e.g. 'dengue'.", max_length=64
    )
    area: str = Field(default="System-Wide", description="Barangay name or 'System-Wide'.", max_length=128)

    @model_validator(mode="after")
    def _require_subject_for_disease(self) -> "ForecastContext":
        if self.category is ForecastCategory.DISEASE and not (self.subject and self.subject.strip()):
            raise ValueError("subject is required when category is 'disease'.")
        return self

    @property
    def label(self) -> str:
        if self.category is ForecastCategory.DISEASE:
            return f"{self.subject} {CATEGORY_LABELS[self.category]}"
        return CATEGORY_LABELS[self.category]

    @property
    def unit(self) -> str:
        return "cases" if self.category is ForecastCategory.DISEASE else "cards"


class HistoricalPoint(BaseModel):
    """Count of completed appointments on a single reporting day."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    count: int = Field(ge=0)


class PromptMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user"]
    content: str


class ForecastRequest(BaseModel):
    """Everything the upstream service needs for one forecast call. Never persisted."""

    model_config = ConfigDict(frozen=True)

    series: Tuple[HistoricalPoint, ...] = Field(min_length=1)
    horizon_days: int = Field(ge=1)
    context: ForecastContext
    messages: Tuple[PromptMessage, ...] = ()

    @property
    def last_historical_date(self) -> date:
        return self.series[-1].date

    @property
    def expected_dates(self) -> List[date]:
        last = self.last_historical_date
        return [last + timedelta(days=offset) for offset in range(1, self.horizon_days + 1)]

    def as_messages(self) -> List[dict]:
        return [message.model_dump() for message in self.messages]


class ForecastApiRequest(BaseModel):
    """Body accepted by the HTTP forecast endpoint."""

    records: List[AppointmentRecord]
    date_range: DateRange
    horizon_days: int = DEFAULT_HORIZON_DAYS
    context: ForecastContext
    filter_by_category: bool = Field(
        default=False,
        description="Drop records whose service_category does not belong to context.category.",
    )


class BacktestApiRequest(BaseModel):
    """Body accepted by the HTTP backtest endpoint."""

    records: List[AppointmentRecord]
    date_range: DateRange
    holdout_days: int = Field(default=7, description="Trailing days held out and forecast from the rest.")
    context: ForecastContext
    filter_by_category: bool = False


__all__ = [
    "AppointmentRecord",
    "BacktestApiRequest",
    "CATEGORY_LABELS",
    "DateRange",
    "ForecastApiRequest",
    "ForecastCategory",
    "ForecastContext",
    "ForecastRequest",
    "HistoricalPoint",
    "PromptMessage",
]
