"""
Tests for the chargeable leave-day calculator
"""
from datetime import date
from decimal import Decimal

from app.models.employee import Role
from app.models.leave import DayGranularity, DayType, LeaveType
from app.services.calendar_service import (
    calculate_leave_days,
    day_weight,
    months_touched,
    normalize_granularity,
)

FULL = DayGranularity.FULL
HALF = DayGranularity.HALF

# 2026-03-09 is a Monday
MON = date(2026, 3, 9)
SAT = date(2026, 3, 14)
SUN = date(2026, 3, 15)


def _dates(plan):
    return [d.date for d in plan.days]


def test_week_for_employee_excludes_weekend():
    """Mon..Sun for an employee: Saturday and Sunday are skipped"""
    plan = calculate_leave_days(MON, SUN, FULL, FULL, LeaveType.CASUAL, Role.EMPLOYEE.value)

    assert plan.total_days == Decimal("5")
    assert _dates(plan) == [date(2026, 3, d) for d in range(9, 14)]


def test_intern_works_saturdays():
    plan = calculate_leave_days(MON, SUN, FULL, FULL, LeaveType.CASUAL, Role.INTERN.value)

    assert plan.total_days == Decimal("6")
    assert SAT in _dates(plan)
    assert SUN not in _dates(plan)


def test_lop_counts_saturday_and_holidays_but_never_sunday():
    holidays = {date(2026, 3, 10): "Festival"}
    plan = calculate_leave_days(MON, SUN, FULL, FULL, LeaveType.LOP, Role.EMPLOYEE.value, holidays)

    assert plan.total_days == Decimal("6")
    assert date(2026, 3, 10) in _dates(plan)
    assert SAT in _dates(plan)
    assert SUN not in _dates(plan)


def test_holidays_excluded_for_non_lop():
    holidays = {date(2026, 3, 10): "Festival", date(2026, 3, 11): "Festival Day 2"}
    plan = calculate_leave_days(MON, date(2026, 3, 13), FULL, FULL, LeaveType.SICK, Role.EMPLOYEE.value, holidays)

    assert plan.total_days == Decimal("3")
    assert _dates(plan) == [MON, date(2026, 3, 12), date(2026, 3, 13)]


def test_holiday_set_accepted_as_plain_dates():
    plan = calculate_leave_days(
        MON, date(2026, 3, 10), FULL, FULL, LeaveType.CASUAL, Role.EMPLOYEE.value, {date(2026, 3, 10)}
    )
    assert plan.total_days == Decimal("1")


def test_half_day_edges():
    """First and last day take their own granularity; interior days are full"""
    plan = calculate_leave_days(MON, date(2026, 3, 11), HALF, DayGranularity.FIRST_HALF,
                                LeaveType.CASUAL, Role.EMPLOYEE.value)

    assert plan.total_days == Decimal("2")
    assert [d.day_type for d in plan.days] == [DayType.HALF, DayType.FULL, DayType.HALF]


def test_single_day_uses_start_granularity():
    plan = calculate_leave_days(MON, MON, DayGranularity.SECOND_HALF, FULL, LeaveType.CASUAL, Role.EMPLOYEE.value)

    assert plan.total_days == Decimal("0.5")
    assert plan.days[0].day_type == DayType.HALF


def test_range_inside_weekend_has_no_valid_days():
    plan = calculate_leave_days(SAT, SUN, FULL, FULL, LeaveType.CASUAL, Role.EMPLOYEE.value)

    assert plan.total_days == Decimal("0")
    assert plan.days == []


def test_total_equals_sum_of_weights_and_is_deterministic():
    args = (MON, date(2026, 3, 24), HALF, HALF, LeaveType.CASUAL, Role.EMPLOYEE.value, {date(2026, 3, 17): "X"})
    first = calculate_leave_days(*args)
    second = calculate_leave_days(*args)

    assert first == second
    assert first.total_days == sum(day_weight(d.day_type) for d in first.days)


def test_granularity_normalization():
    assert normalize_granularity(None) == DayType.FULL
    assert normalize_granularity(DayGranularity.FULL) == DayType.FULL
    assert normalize_granularity(DayGranularity.FIRST_HALF) == DayType.HALF
    assert normalize_granularity(DayGranularity.SECOND_HALF) == DayType.HALF


def test_months_touched_splits_weights_by_month():
    plan = calculate_leave_days(date(2026, 3, 30), date(2026, 4, 2), FULL, HALF, LeaveType.LOP, Role.EMPLOYEE.value)

    assert months_touched(plan.days) == {(2026, 3): Decimal("2"), (2026, 4): Decimal("1.5")}
