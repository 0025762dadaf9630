"""
Percentage-to-days and days-to-cost conversion.

An assignment's percent applies to the employee's available days in the
engagement window. Work package shares are fractions of that assignment
percent, not of the employee's whole time, and need not add up to 100.
"""
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from .schemas import AllocationResult, EmployeeRecord, HolidayRecord, ShareRecord, WorkPackageAllocation
from .workdays import availability

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 8
WEEKS_PER_YEAR = 52


def round_half_up(value: float, places: int) -> float:
    """Commercial rounding; ``round()`` would round half to even."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def effective_working_days_per_year(employee: EmployeeRecord, holiday_count: int) -> int:
    days = round_half_up(employee.weekly_hours / HOURS_PER_DAY * WEEKS_PER_YEAR, 0)
    days -= employee.leave_days
    if employee.observes_holidays:
        days -= holiday_count
    return max(int(days), 1)


def daily_rate(employee: Optional[EmployeeRecord], holiday_count: int) -> float:
    if employee is None:
        return 0.0
    annual_cost = employee.annual_salary + employee.annual_on_costs
    if annual_cost == 0:
        return 0.0
    return annual_cost / effective_working_days_per_year(employee, holiday_count)


def distribution_total(distribution: Iterable[ShareRecord]) -> float:
    return round_half_up(sum(share.percent for share in distribution), 2)


def distribution_warnings(distribution: Sequence[ShareRecord]) -> list[str]:
    """Human readable warnings; an over-100 distribution is never an error."""
    total = distribution_total(distribution)
    if total > 100:
        return [f"Work package shares add up to {total:g}% (more than 100%)."]
    return []


def allocate(employee: Optional[EmployeeRecord], percent: float, start: date, end: date,
             distribution: Sequence[ShareRecord], holidays: Sequence[HolidayRecord]) -> AllocationResult:
    """
    Fractional days and cost for one assignment.

    ``total_days`` is rounded to one decimal; per work package days are not
    rounded again. Costs are rounded half-up to cents.
    """
    if employee is None:
        logger.debug("No employee record, returning empty allocation")
        return AllocationResult()

    avail = availability(employee, start, end, holidays)
    rate = daily_rate(employee, len(holidays))
    total_days = 0.0
    if percent > 0:
        total_days = round_half_up(avail.available * percent / 100, 1)

    per_work_package = []
    for share in distribution:
        days = total_days * share.percent / 100
        per_work_package.append(WorkPackageAllocation(
            work_package_id=share.work_package_id,
            percent=share.percent,
            days=days,
            cost=round_half_up(days * rate, 2),
        ))

    return AllocationResult(
        business_days=avail.business_days,
        blocked=avail.blocked,
        available=avail.available,
        total_days=total_days,
        daily_rate=round_half_up(rate, 2),
        project_cost=round_half_up(total_days * rate, 2),
        per_work_package=per_work_package,
    )
