"""
Calendar service - chargeable leave-day calculation

Everything here is pure: dates are plain calendar dates (no time zone),
holidays are supplied by the caller.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

from app.models.employee import Role
from app.models.leave import DayGranularity, DayType, LeaveType

FULL_DAY = Decimal("1")
HALF_DAY = Decimal("0.5")

SATURDAY = 5
SUNDAY = 6

HolidaySet = Union[Mapping[date, str], Iterable[date]]


class PlannedDay(NamedTuple):
    date: date
    day_type: DayType


class LeaveDayPlan(NamedTuple):
    total_days: Decimal
    days: List[PlannedDay]


def day_weight(day_type: DayType) -> Decimal:
    """Chargeable weight of a single leave day"""
    return HALF_DAY if DayType(day_type) == DayType.HALF else FULL_DAY


def normalize_granularity(granularity: Optional[DayGranularity]) -> DayType:
    """FIRST_HALF/SECOND_HALF are display tags of a half day."""
    if granularity is None:
        return DayType.FULL
    if DayGranularity(granularity) == DayGranularity.FULL:
        return DayType.FULL
    return DayType.HALF


def is_excluded_weekday(check_date: date, leave_type: LeaveType, employee_role: Optional[str]) -> bool:
    """
    Whether a weekday is never chargeable for this leave type and role.

    Sunday is always off. Saturday is off except for interns (who work
    Saturdays) and for LOP.
    """
    weekday = check_date.weekday()
    if weekday == SUNDAY:
        return True
    if weekday == SATURDAY:
        return employee_role != Role.INTERN.value and LeaveType(leave_type) != LeaveType.LOP
    return False


def calculate_leave_days(
    start_date: date,
    end_date: date,
    start_type: Optional[DayGranularity],
    end_type: Optional[DayGranularity],
    leave_type: LeaveType,
    employee_role: Optional[str],
    holidays: Optional[HolidaySet] = None,
) -> LeaveDayPlan:
    """
    Materialize the chargeable days of a leave range.

    Args:
        start_date: First calendar date (inclusive)
        end_date: Last calendar date (inclusive)
        start_type: Granularity of the first day
        end_type: Granularity of the last day
        leave_type: Leave type (LOP counts Saturdays and holidays)
        employee_role: Role of the applicant (interns work Saturdays)
        holidays: Active holiday dates, as a set or a {date: name} mapping

    Returns:
        LeaveDayPlan with total_days equal to the sum of the day weights.
        An empty plan (total 0) means the range holds no valid leave day.
    """
    leave_type = LeaveType(leave_type)
    holiday_dates = set(holidays or ())
    first_type = normalize_granularity(start_type)
    last_type = normalize_granularity(end_type)

    days: List[PlannedDay] = []
    current = start_date
    while current <= end_date:
        excluded = is_excluded_weekday(current, leave_type, employee_role)
        if not excluded and leave_type != LeaveType.LOP and current in holiday_dates:
            excluded = True

        if not excluded:
            if start_date == end_date:
                day_type = first_type
            elif current == start_date:
                day_type = first_type
            elif current == end_date:
                day_type = last_type
            else:
                day_type = DayType.FULL
            days.append(PlannedDay(current, day_type))
        current += timedelta(days=1)

    total = sum((day_weight(d.day_type) for d in days), Decimal("0"))
    return LeaveDayPlan(total, days)


def months_touched(days: Iterable[PlannedDay]) -> Dict[Tuple[int, int], Decimal]:
    """Sum day weights per (year, month)"""
    by_month: Dict[Tuple[int, int], Decimal] = {}
    for day in days:
        key = (day.date.year, day.date.month)
        by_month[key] = by_month.get(key, Decimal("0")) + day_weight(day.day_type)
    return by_month
