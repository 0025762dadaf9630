from datetime import date
from enum import Enum

from ninja import Schema


class BlockReason(str, Enum):
    """Why an employee cannot work on a given day."""
    NONE = "none"
    VACATION = "vacation"
    SICK = "sick"
    HOLIDAY = "holiday"


class AbsenceRecord(Schema):
    """Vacation or sick interval, both bounds inclusive."""
    kind: str
    start: date
    end: date
    note: str = ""


class HolidayRecord(Schema):
    day: date
    name: str


class EmployeeRecord(Schema):
    """Everything the allocation engine needs to know about an employee."""
    id: str
    name: str = ""
    weekly_hours: float = 40.0
    leave_days: int = 30
    observes_holidays: bool = True
    annual_salary: float = 0.0
    annual_on_costs: float = 0.0
    absences: list[AbsenceRecord] = []


class ShareRecord(Schema):
    """Work package share, as a percent of the assignment's own percent."""
    work_package_id: str
    percent: float


class AvailabilityResult(Schema):
    business_days: int = 0
    blocked: int = 0
    available: int = 0


class WorkPackageAllocation(Schema):
    work_package_id: str
    percent: float
    days: float
    cost: float


class AllocationResult(Schema):
    business_days: int = 0
    blocked: int = 0
    available: int = 0
    total_days: float = 0.0
    daily_rate: float = 0.0
    project_cost: float = 0.0
    per_work_package: list[WorkPackageAllocation] = []


class DayPlacement(Schema):
    """Concrete days chosen for one (employee, work package) quota."""
    hours_by_date: dict[date, int] = {}
    partial_date: date | None = None
    partial_hours: int | None = None

    @property
    def worked_dates(self) -> list[date]:
        return sorted(self.hours_by_date)

    def hours_on(self, day: date) -> int:
        return self.hours_by_date.get(day, 0)


# API response schemas

class AssignmentAllocationSchema(Schema):
    assignment_id: str
    employee_id: str
    employee_name: str
    percent: int
    start_date: date
    end_date: date
    allocation: AllocationResult
    distribution_total: float
    warnings: list[str]


class PlacementResponseSchema(Schema):
    assignment_id: str
    work_package_id: str
    quota_days: float
    worked_dates: list[date]
    hours_by_date: dict[date, int]
    partial_date: date | None
    partial_hours: int | None


class CalendarDaySchema(Schema):
    """Single row in an employee calendar."""
    day: date
    blocked: BlockReason
    holiday_name: str | None = None
    hours: dict[str, int]  # key is work package id
    total_hours: int


class EmployeeCalendarSchema(Schema):
    employee_id: str
    employee_name: str
    start_date: date
    end_date: date
    days: list[CalendarDaySchema]


class WorkPackageWorkerSchema(Schema):
    employee_id: str
    employee_name: str
    quota_days: float
    daily_hours: dict[date, int]


class WorkPackageCalendarSchema(Schema):
    work_package_id: str
    work_package_name: str
    effective_start: date | None
    effective_end: date | None
    workers: list[WorkPackageWorkerSchema]


class WorkPackageNodeSchema(Schema):
    id: str
    name: str
    status: str
    effective_start: date | None
    effective_end: date | None
    children: list["WorkPackageNodeSchema"] = []


WorkPackageNodeSchema.model_rebuild()


class ProjectCostSchema(Schema):
    project_id: str
    project_name: str
    assignments: list[AssignmentAllocationSchema]
    total_days: float
    total_cost: float
    cost_by_work_package: dict[str, float]
    budget: float | None
    budget_remaining: float | None


class StaffingKPIMetricsSchema(Schema):
    """Schema for project staffing KPIs."""
    available_days: int
    allocated_days: float
    utilization_rate: float
    max_employee_days: float
    gini_coefficient: float
    total_employees: int
    total_assignments: int
