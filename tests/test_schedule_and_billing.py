from datetime import date, datetime

import pytest

from storefront.models import PaymentGroupStatus, PaymentPlan
from storefront.services.billing_service import (
    add_months,
    build_payment_groups,
    format_hu_numeric_date,
    split_amount,
)
from storefront.services.schedule_service import (
    DeliveryCalendarSettings,
    available_delivery_dates,
    date_from_index,
    format_hu_date_with_day,
    is_hungarian_holiday,
    nearest_available_date,
    next_day_of_week,
    quick_select_dates,
    selectable_indices,
    validate_schedule,
)

START = date(2026, 1, 19)


def test_week_indices_map_to_mondays_and_tuesdays():
    assert date_from_index(START, 0) == date(2026, 1, 19)
    assert date_from_index(START, 3) == date(2026, 2, 9)
    assert date_from_index(START, 100) == date(2026, 1, 20)
    assert date_from_index(START, 103) == date(2026, 2, 10)


def test_holidays_are_not_selectable():
    indices = selectable_indices(START, 12)
    assert is_hungarian_holiday(date(2026, 4, 6))
    assert 11 not in indices
    assert 111 in indices
    assert len(indices) == 23


def test_validate_schedule_sorts_chronologically():
    assert validate_schedule([1, 100, 0], START) == [0, 100, 1]


@pytest.mark.parametrize("indices", [[], [0, 0], [11], ["x"], [40]])
def test_validate_schedule_rejects_bad_selections(indices):
    with pytest.raises(ValueError):
        validate_schedule(indices, START)


def test_hungarian_date_format():
    assert format_hu_date_with_day(date(2026, 1, 19)) == "január 19., hétfő"
    assert format_hu_numeric_date(date(2026, 3, 5)) == "2026. 03. 05."


def test_next_day_of_week_is_strictly_after_start():
    monday = date(2026, 1, 19)
    assert next_day_of_week(monday, 0) == date(2026, 1, 26)
    assert next_day_of_week(monday, 2) == date(2026, 1, 21)
    assert next_day_of_week(monday, 2, weeks_offset=1) == date(2026, 1, 28)


def test_available_delivery_dates_respect_cutoff():
    now = datetime(2026, 1, 19, 12, 0)
    settings = DeliveryCalendarSettings(days=["tuesday", "thursday"], weeks_in_advance=2, cutoff_hours=48)
    dates = available_delivery_dates(settings, now)

    assert [item.date for item in dates] == [
        date(2026, 1, 20),
        date(2026, 1, 22),
        date(2026, 1, 27),
        date(2026, 1, 29),
    ]
    assert dates[0].is_available is False
    assert dates[1].is_available is True
    assert dates[0].day_name == "Kedd"
    assert nearest_available_date(dates) == date(2026, 1, 22)


def test_quick_select_dates():
    now = datetime(2026, 1, 19, 9, 0)
    weekly = quick_select_dates("weekly", now)
    biweekly = quick_select_dates("biweekly", now)
    assert len(weekly) == 4
    assert all(day.weekday() == 0 for day in weekly)
    assert len(biweekly) == 8


def test_add_months_clamps_to_month_end():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)


def test_split_amount_puts_remainder_last():
    assert split_amount(100, 3) == [33, 33, 34]
    assert sum(split_amount(61801, 3)) == 61801


def test_full_plan_is_one_group_due_today():
    groups = build_payment_groups(PaymentPlan.FULL, 41200, [0, 1], START, today=date(2026, 1, 10))
    assert len(groups) == 1
    assert groups[0].amount == 41200
    assert groups[0].due_date == date(2026, 1, 10)
    assert groups[0].status == PaymentGroupStatus.PENDING


def test_monthly_plan_spreads_over_months():
    groups = build_payment_groups("monthly", 61800, [0, 1, 2], START, today=date(2026, 1, 10))
    assert [group.amount for group in groups] == [20600, 20600, 20600]
    assert [group.due_date for group in groups] == [date(2026, 1, 10), date(2026, 2, 10), date(2026, 3, 10)]
    assert groups[0].description == "1. havi részlet (3 részletből)"


def test_delivery_plan_is_due_the_day_before_each_delivery():
    groups = build_payment_groups(PaymentPlan.DELIVERY, 41200, [100, 0], START)
    assert [group.due_date for group in groups] == [date(2026, 1, 18), date(2026, 1, 19)]
    assert groups[1].description == "2. szállítás fizetése (2026. 01. 20.)"
