"""Delivery date arithmetic for subscriptions and the classic cart calendar."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from storefront.config import Config
from storefront.models import DeliveryStatus, OrderDelivery

TUESDAY_OFFSET = 100

HUNGARIAN_HOLIDAYS_2026 = (
    date(2026, 1, 1),
    date(2026, 3, 15),
    date(2026, 4, 3),
    date(2026, 4, 6),
    date(2026, 5, 1),
    date(2026, 5, 25),
    date(2026, 8, 20),
    date(2026, 10, 23),
    date(2026, 11, 1),
    date(2026, 12, 25),
    date(2026, 12, 26),
)

WEEKDAY_INDEX = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

HU_DAY_NAMES = {
    "monday": "Hétfő",
    "tuesday": "Kedd",
    "wednesday": "Szerda",
    "thursday": "Csütörtök",
    "friday": "Péntek",
    "saturday": "Szombat",
    "sunday": "Vasárnap",
}

HU_MONTH_NAMES = (
    "január",
    "február",
    "március",
    "április",
    "május",
    "június",
    "július",
    "augusztus",
    "szeptember",
    "október",
    "november",
    "december",
)

_HU_WEEKDAYS_LOWER = ("hétfő", "kedd", "szerda", "csütörtök", "péntek", "szombat", "vasárnap")


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


# ---------------------------------------------
# Subscription week indices
# ---------------------------------------------

def monday_of_week(start: date, weeks: int) -> date:
    return _as_date(start) + timedelta(weeks=weeks)


def date_from_index(start: date, index: int) -> date:
    """Index below 100 is the Monday of that week, 100 and above the Tuesday of week ``index - 100``."""
    if index >= TUESDAY_OFFSET:
        return monday_of_week(start, index - TUESDAY_OFFSET) + timedelta(days=1)
    return monday_of_week(start, index)


def is_same_day(first: date | datetime, second: date | datetime) -> bool:
    return _as_date(first) == _as_date(second)


def is_hungarian_holiday(day: date | datetime) -> bool:
    return _as_date(day) in HUNGARIAN_HOLIDAYS_2026


def selectable_indices(start: Optional[date] = None, horizon_weeks: Optional[int] = None) -> List[int]:
    start = start or Config.SCHEDULE_START_DATE
    horizon = Config.SCHEDULE_HORIZON_WEEKS if horizon_weeks is None else horizon_weeks
    indices: List[int] = []
    for week in range(horizon):
        for index in (week, week + TUESDAY_OFFSET):
            if not is_hungarian_holiday(date_from_index(start, index)):
                indices.append(index)
    return indices


def validate_schedule(
    indices: Sequence[int],
    start: Optional[date] = None,
    horizon_weeks: Optional[int] = None,
) -> List[int]:
    """Return the schedule sorted chronologically, or raise ``ValueError``."""
    if not indices:
        raise ValueError("At least one delivery date must be selected")
    try:
        normalized = [int(index) for index in indices]
    except (TypeError, ValueError):
        raise ValueError("Schedule entries must be whole numbers")
    if len(set(normalized)) != len(normalized):
        raise ValueError("Delivery dates must be unique")
    allowed = set(selectable_indices(start, horizon_weeks))
    invalid = [index for index in normalized if index not in allowed]
    if invalid:
        raise ValueError(f"Delivery dates not available: {invalid}")
    start = start or Config.SCHEDULE_START_DATE
    return sorted(normalized, key=lambda index: date_from_index(start, index))


def schedule_dates(indices: Iterable[int], start: Optional[date] = None) -> List[date]:
    start = start or Config.SCHEDULE_START_DATE
    return sorted(date_from_index(start, index) for index in indices)


def build_delivery_packages(order: Any, schedule: Sequence[int], start: Optional[date] = None) -> list:
    """Create one scheduled ``OrderDelivery`` per week index, each with the full bottle count."""
    start = start or Config.SCHEDULE_START_DATE
    ordered = sorted(schedule, key=lambda index: date_from_index(start, index))
    total = len(ordered)
    packages = []
    for position, index in enumerate(ordered, start=1):
        delivery_date = date_from_index(start, index)
        packages.append(
            OrderDelivery(
                order=order,
                delivery_date=delivery_date,
                delivery_index=index,
                is_monday=delivery_date.weekday() == 0,
                quantity=order.quantity,
                amount=order.unit_price * order.quantity,
                status=DeliveryStatus.SCHEDULED,
                package_number=position,
                total_packages=total,
            )
        )
    return packages


# ---------------------------------------------
# Classic cart delivery calendar
# ---------------------------------------------

@dataclass
class DeliveryCalendarSettings:
    days: List[str] = field(default_factory=lambda: ["monday", "wednesday"])
    weeks_in_advance: int = 4
    cutoff_hours: int = 24
    is_active: bool = True


@dataclass
class DeliveryDate:
    date: date
    day_name: str
    formatted: str
    is_available: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "dayName": self.day_name,
            "formatted": self.formatted,
            "isAvailable": self.is_available,
        }


def next_day_of_week(start: date | datetime, weekday: int, weeks_offset: int = 0) -> date:
    """Next ``weekday`` (Monday is 0) strictly after ``start``, shifted by whole weeks."""
    start_day = _as_date(start)
    days_until = weekday - start_day.weekday()
    if days_until <= 0:
        days_until += 7
    return start_day + timedelta(days=days_until + weeks_offset * 7)


def format_hu_date(day: date | datetime) -> str:
    day = _as_date(day)
    return f"{HU_MONTH_NAMES[day.month - 1]} {day.day}."


def format_hu_date_with_day(day: date | datetime) -> str:
    day = _as_date(day)
    return f"{format_hu_date(day)}, {_HU_WEEKDAYS_LOWER[day.weekday()]}"


def available_delivery_dates(settings: DeliveryCalendarSettings, now: Optional[datetime] = None) -> List[DeliveryDate]:
    now = now or datetime.now()
    cutoff = now + timedelta(hours=settings.cutoff_hours)
    dates: List[DeliveryDate] = []
    for week in range(settings.weeks_in_advance):
        for day_name in settings.days:
            candidate = next_day_of_week(now, WEEKDAY_INDEX[day_name], week)
            # Candidates keep the current time of day, matching the cutoff comparison.
            candidate_at = datetime.combine(candidate, now.timetz())
            dates.append(
                DeliveryDate(
                    date=candidate,
                    day_name=HU_DAY_NAMES[day_name],
                    formatted=format_hu_date(candidate),
                    is_available=candidate_at > cutoff,
                )
            )
    return sorted(dates, key=lambda item: item.date)


def quick_select_dates(kind: str, now: Optional[datetime] = None) -> List[date]:
    now = now or datetime.now()
    dates: List[date] = []
    for week in range(4):
        dates.append(next_day_of_week(now, WEEKDAY_INDEX["monday"], week))
        if kind != "weekly":
            dates.append(next_day_of_week(now, WEEKDAY_INDEX["wednesday"], week))
    return sorted(dates)


def nearest_available_date(dates: Iterable[DeliveryDate]) -> Optional[date]:
    for item in dates:
        if item.is_available:
            return item.date
    return None
