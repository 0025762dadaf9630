"""
Weekday arithmetic and employee availability.

Everything here works at day granularity and is free of ORM access: callers
pass an ``EmployeeRecord`` and the holiday calendar explicitly.
"""
from datetime import date, timedelta
from typing import Iterable, Iterator, Optional

from .schemas import AvailabilityResult, BlockReason, EmployeeRecord, HolidayRecord


def is_business_day(day: date) -> bool:
    """Monday to Friday. Holidays are not considered here."""
    return day.weekday() < 5


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in [start, end]; nothing if start > end."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def count_business_days(start: date, end: date) -> int:
    if start > end:
        return 0
    full_weeks, rest = divmod((end - start).days + 1, 7)
    count = full_weeks * 5
    for offset in range(rest):
        if is_business_day(start + timedelta(days=full_weeks * 7 + offset)):
            count += 1
    return count


def holiday_map(holidays: Iterable[HolidayRecord]) -> dict[date, str]:
    return {h.day: h.name for h in holidays}


def blocked_reason(employee: EmployeeRecord, day: date, holidays: dict[date, str]) -> BlockReason:
    """
    Reason the employee cannot work on ``day``.

    Absences win over holidays; the first matching absence in the
    employee's list decides between vacation and sick.
    """
    if not is_business_day(day):
        return BlockReason.NONE
    for absence in employee.absences:
        if absence.start <= day <= absence.end:
            return BlockReason.SICK if absence.kind == BlockReason.SICK.value else BlockReason.VACATION
    if employee.observes_holidays and day in holidays:
        return BlockReason.HOLIDAY
    return BlockReason.NONE


def blocked_days(employee: Optional[EmployeeRecord], start: date, end: date,
                 holidays: Iterable[HolidayRecord]) -> int:
    if employee is None:
        return 0
    by_date = holiday_map(holidays)
    return sum(
        1 for day in iter_days(start, end)
        if blocked_reason(employee, day, by_date) is not BlockReason.NONE
    )


def available_dates(employee: Optional[EmployeeRecord], start: date, end: date,
                    holidays: Iterable[HolidayRecord]) -> list[date]:
    """Unblocked business days in [start, end], ascending."""
    if employee is None:
        return []
    by_date = holiday_map(holidays)
    return [
        day for day in iter_days(start, end)
        if is_business_day(day) and blocked_reason(employee, day, by_date) is BlockReason.NONE
    ]


def available_days(employee: Optional[EmployeeRecord], start: date, end: date,
                   holidays: Iterable[HolidayRecord]) -> int:
    return availability(employee, start, end, holidays).available


def availability(employee: Optional[EmployeeRecord], start: date, end: date,
                 holidays: Iterable[HolidayRecord]) -> AvailabilityResult:
    if employee is None or start > end:
        return AvailabilityResult()
    business = count_business_days(start, end)
    blocked = blocked_days(employee, start, end, holidays)
    return AvailabilityResult(
        business_days=business,
        blocked=blocked,
        available=max(business - blocked, 0),
    )
