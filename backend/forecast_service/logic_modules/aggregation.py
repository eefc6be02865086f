from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Mapping, Tuple, Union
from zoneinfo import ZoneInfo

import pandas as pd

from core.configs.forecast_config import MIN_HISTORY_DAYS, REPORTING_TIMEZONE
from forecast_service.errors import InsufficientDataError, InvalidRangeError
from forecast_service.schema_modules.input_schemas import (
    AppointmentRecord,
    ForecastCategory,
    ForecastContext,
    HistoricalPoint,
)

logger = logging.getLogger(__name__)

RecordLike = Union[AppointmentRecord, Mapping[str, object]]

HEALTHCARD_SERVICE_IDS: Dict[ForecastCategory, Tuple[int, ...]] = {
    ForecastCategory.FOOD_HANDLER: (12, 13),
    ForecastCategory.NON_FOOD: (14, 15),
}


class TimeSeriesAggregator:
    """
    Turns completed-appointment timestamps into a gap-free daily count series.

    Days are assigned in a single reporting timezone so that an appointment completed at
    23:30 local time is never counted on the next UTC day.
    """

    def __init__(
        self,
        *,
        reporting_timezone: str | ZoneInfo = REPORTING_TIMEZONE,
        min_active_days: int = MIN_HISTORY_DAYS,
    ) -> None:
        self.tz = reporting_timezone if isinstance(reporting_timezone, ZoneInfo) else ZoneInfo(reporting_timezone)
        self.min_active_days = min_active_days

    def aggregate(self, records: Iterable[RecordLike], start: date, end: date) -> Tuple[HistoricalPoint, ...]:
        if start > end:
            raise InvalidRangeError(start, end)

        daily = self._daily_counts(_coerce_records(records), start, end)
        active_days = int((daily > 0).sum())

        logger.info(
            "forecast.aggregation.completed",
            extra={
                "start": start.isoformat(),
                "end": end.isoformat(),
                "days": len(daily),
                "active_days": active_days,
                "total_count": int(daily.sum()),
            },
        )

        if active_days < self.min_active_days:
            raise InsufficientDataError(active_days, self.min_active_days)

        return tuple(
            HistoricalPoint(date=timestamp.date(), count=int(count)) for timestamp, count in daily.items()
        )

    def _daily_counts(self, records: List[AppointmentRecord], start: date, end: date) -> pd.Series:
        calendar = pd.date_range(start=start, end=end, freq="D")
        if not records:
            return pd.Series(0, index=calendar, dtype="int64")

        completed = pd.to_datetime([_as_utc(record.completed_at) for record in records], utc=True)
        local_days = completed.tz_convert(self.tz).normalize().tz_localize(None)
        counts = pd.Series(1, index=local_days, dtype="int64").groupby(level=0).sum()
        return counts.reindex(calendar, fill_value=0).astype("int64")


def aggregate(
    records: Iterable[RecordLike],
    start: date,
    end: date,
    *,
    reporting_timezone: str = REPORTING_TIMEZONE,
) -> Tuple[HistoricalPoint, ...]:
    """Module-level shortcut using the default minimum-history rule."""

    return TimeSeriesAggregator(reporting_timezone=reporting_timezone).aggregate(records, start, end)


def records_for_context(records: Iterable[RecordLike], context: ForecastContext) -> List[AppointmentRecord]:
    """
    Keep only the records whose service belongs to the forecast category.

    Food-handler and non-food cards map to their processing/renewal service ids; other categories
    are matched on the category label itself. Pink cards are booked under service 12 alongside
    food-handler cards and only told apart by card type, which AppointmentRecord does not carry,
    so callers must label pink appointments with service_category "pink" before filtering.
    """

    accepted = {str(service_id) for service_id in HEALTHCARD_SERVICE_IDS.get(context.category, ())}
    accepted.add(context.category.value)
    selected = [record for record in _coerce_records(records) if str(record.service_category) in accepted]
    logger.info(
        "forecast.aggregation.records_selected",
        extra={"category": context.category.value, "selected": len(selected)},
    )
    return selected


def _as_utc(value: datetime) -> datetime:
    # naive timestamps are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coerce_records(records: Iterable[RecordLike]) -> List[AppointmentRecord]:
    return [
        record if isinstance(record, AppointmentRecord) else AppointmentRecord.model_validate(record)
        for record in records
    ]


__all__ = ["TimeSeriesAggregator", "aggregate", "records_for_context", "HEALTHCARD_SERVICE_IDS"]
