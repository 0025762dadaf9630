import logging
from collections import defaultdict
from datetime import date
from typing import DefaultDict, Optional
from uuid import UUID

from inequality import gini  # type: ignore

from .allocation import allocate, distribution_total, distribution_warnings, round_half_up
from .models import Assignment, Employee, Holiday, Project, WorkPackage
from .placement import place_days
from .schemas import (
    AbsenceRecord, AllocationResult, AssignmentAllocationSchema, AvailabilityResult,
    CalendarDaySchema, DayPlacement, EmployeeCalendarSchema, EmployeeRecord, HolidayRecord,
    PlacementResponseSchema, ProjectCostSchema, ShareRecord, StaffingKPIMetricsSchema,
    WorkPackageCalendarSchema, WorkPackageNodeSchema, WorkPackageWorkerSchema
)
from .workdays import availability, available_dates, blocked_reason, holiday_map, iter_days

logger = logging.getLogger(__name__)


class RecordService:
    """Builds engine records from ORM rows."""

    @staticmethod
    def employee_record(employee: Employee) -> EmployeeRecord:
        return EmployeeRecord(
            id=str(employee.id),
            name=employee.name,
            weekly_hours=float(employee.weekly_hours),
            leave_days=employee.leave_days,
            observes_holidays=employee.observes_holidays,
            annual_salary=float(employee.annual_salary),
            annual_on_costs=float(employee.annual_on_costs),
            absences=[
                AbsenceRecord(kind=a.kind, start=a.start_date, end=a.end_date, note=a.note)
                for a in employee.absences.all()
            ],
        )

    @staticmethod
    def holiday_records() -> list[HolidayRecord]:
        return [HolidayRecord(day=h.date, name=h.name) for h in Holiday.objects.all()]

    @staticmethod
    def share_records(assignment: Assignment) -> list[ShareRecord]:
        return [
            ShareRecord(work_package_id=str(s.work_package_id), percent=float(s.percent))
            for s in assignment.shares.all()
        ]


class WorkPackageService:
    """Service class for work package tree operations."""

    @staticmethod
    def effective_range(work_package: WorkPackage) -> tuple[Optional[date], Optional[date]]:
        return work_package.effective_range()

    @staticmethod
    def work_package_tree(project: Project) -> list[WorkPackageNodeSchema]:
        """Nested list of the project's work packages in display order, with effective ranges."""
        nodes = list(project.work_packages.all())
        children: DefaultDict[Optional[UUID], list] = defaultdict(list)
        for node in nodes:
            children[node.parent_id].append(node)

        def build(parent_id, inherited_start, inherited_end):
            tree = []
            for node in children.get(parent_id, []):
                start = node.start_date or inherited_start
                end = node.end_date or inherited_end
                tree.append(WorkPackageNodeSchema(
                    id=str(node.id),
                    name=node.name,
                    status=node.status,
                    effective_start=start,
                    effective_end=end,
                    children=build(node.id, start, end),
                ))
            return tree

        return build(None, project.start_date, project.end_date)


class AllocationService:
    """Service class for availability, allocation and placement of assignments."""

    @staticmethod
    def employee_availability(employee_id, start_date: date, end_date: date) -> AvailabilityResult:
        employee = Employee.objects.filter(pk=employee_id).prefetch_related("absences").first()
        if employee is None:
            logger.warning("Unknown employee %s, returning zero availability", employee_id)
            return AvailabilityResult()
        record = RecordService.employee_record(employee)
        return availability(record, start_date, end_date, RecordService.holiday_records())

    @staticmethod
    def assignment_allocation(assignment: Assignment,
                              holidays: Optional[list[HolidayRecord]] = None) -> AssignmentAllocationSchema:
        if holidays is None:
            holidays = RecordService.holiday_records()
        record = RecordService.employee_record(assignment.employee)
        shares = RecordService.share_records(assignment)
        warnings = distribution_warnings(shares)
        if warnings:
            logger.warning("Assignment %s: %s", assignment.id, warnings[0])

        result = allocate(record, assignment.percent, assignment.start_date, assignment.end_date, shares, holidays)
        return AssignmentAllocationSchema(
            assignment_id=str(assignment.id),
            employee_id=record.id,
            employee_name=record.name,
            percent=assignment.percent,
            start_date=assignment.start_date,
            end_date=assignment.end_date,
            allocation=result,
            distribution_total=distribution_total(shares),
            warnings=warnings,
        )

    @staticmethod
    def placement_for(assignment: Assignment, work_package: WorkPackage, employee: EmployeeRecord,
                      allocation: AllocationResult, holidays: list[HolidayRecord]) -> tuple[float, DayPlacement]:
        """
        Place the work package quota on the employee's free business days
        inside both the engagement window and the work package range.
        """
        work_package_id = str(work_package.id)
        quota = next(
            (wp.days for wp in allocation.per_work_package if wp.work_package_id == work_package_id),
            0.0
        )
        wp_start, wp_end = WorkPackageService.effective_range(work_package)
        start = max(assignment.start_date, wp_start) if wp_start else assignment.start_date
        end = min(assignment.end_date, wp_end) if wp_end else assignment.end_date
        dates = available_dates(employee, start, end, holidays)
        return quota, place_days(employee.id, work_package_id, dates, quota)

    @classmethod
    def assignment_placement(cls, assignment: Assignment, work_package: WorkPackage) -> PlacementResponseSchema:
        holidays = RecordService.holiday_records()
        record = RecordService.employee_record(assignment.employee)
        shares = RecordService.share_records(assignment)
        result = allocate(record, assignment.percent, assignment.start_date, assignment.end_date, shares, holidays)
        quota, placement = cls.placement_for(assignment, work_package, record, result, holidays)
        return PlacementResponseSchema(
            assignment_id=str(assignment.id),
            work_package_id=str(work_package.id),
            quota_days=quota,
            worked_dates=placement.worked_dates,
            hours_by_date=placement.hours_by_date,
            partial_date=placement.partial_date,
            partial_hours=placement.partial_hours,
        )


class CalendarService:
    """Service class for calendar views built from placed days."""

    @staticmethod
    def employee_calendar(employee: Employee, start_date: date, end_date: date) -> EmployeeCalendarSchema:
        """One row per day with the blocking reason and hours per work package."""
        holidays = RecordService.holiday_records()
        by_date = holiday_map(holidays)
        record = RecordService.employee_record(employee)

        # Nested mapping: date -> {work_package_id -> hours}
        daily_hours: DefaultDict[date, DefaultDict[str, int]] = defaultdict(lambda: defaultdict(int))
        assignments = employee.assignments.filter(
            start_date__lte=end_date,
            end_date__gte=start_date
        ).prefetch_related("shares__work_package__parent", "shares__work_package__project")

        for assignment in assignments:
            shares = RecordService.share_records(assignment)
            result = allocate(record, assignment.percent, assignment.start_date, assignment.end_date, shares, holidays)
            for share in assignment.shares.all():
                _, placement = AllocationService.placement_for(
                    assignment, share.work_package, record, result, holidays
                )
                for day, hours in placement.hours_by_date.items():
                    if start_date <= day <= end_date:
                        daily_hours[day][str(share.work_package_id)] += hours

        days = []
        for day in iter_days(start_date, end_date):
            hours = dict(daily_hours.get(day, {}))
            days.append(CalendarDaySchema(
                day=day,
                blocked=blocked_reason(record, day, by_date),
                holiday_name=by_date.get(day),
                hours=hours,
                total_hours=sum(hours.values()),
            ))

        return EmployeeCalendarSchema(
            employee_id=record.id,
            employee_name=record.name,
            start_date=start_date,
            end_date=end_date,
            days=days,
        )

    @staticmethod
    def work_package_calendar(work_package: WorkPackage, start_date: Optional[date] = None,
                              end_date: Optional[date] = None) -> WorkPackageCalendarSchema:
        """Hours placed per employee and day for one work package."""
        effective_start, effective_end = WorkPackageService.effective_range(work_package)
        start_date = start_date or effective_start
        end_date = end_date or effective_end
        holidays = RecordService.holiday_records()

        workers = []
        shares = work_package.shares.select_related("assignment__employee").prefetch_related(
            "assignment__employee__absences", "assignment__shares"
        )
        for share in shares:
            assignment = share.assignment
            record = RecordService.employee_record(assignment.employee)
            result = allocate(
                record, assignment.percent, assignment.start_date, assignment.end_date,
                RecordService.share_records(assignment), holidays
            )
            quota, placement = AllocationService.placement_for(assignment, work_package, record, result, holidays)
            workers.append(WorkPackageWorkerSchema(
                employee_id=record.id,
                employee_name=record.name,
                quota_days=quota,
                daily_hours={
                    day: hours for day, hours in placement.hours_by_date.items()
                    if (start_date is None or day >= start_date) and (end_date is None or day <= end_date)
                },
            ))

        return WorkPackageCalendarSchema(
            work_package_id=str(work_package.id),
            work_package_name=work_package.name,
            effective_start=effective_start,
            effective_end=effective_end,
            workers=workers,
        )


class CostService:
    """Service class for project cost tables."""

    @staticmethod
    def project_assignments(project: Project):
        return project.assignments.select_related("employee").prefetch_related(
            "employee__absences", "shares"
        ).order_by("start_date", "employee__name")

    @classmethod
    def project_costs(cls, project: Project) -> ProjectCostSchema:
        holidays = RecordService.holiday_records()
        rows = [
            AllocationService.assignment_allocation(assignment, holidays)
            for assignment in cls.project_assignments(project)
        ]

        cost_by_work_package: DefaultDict[str, float] = defaultdict(float)
        for row in rows:
            for wp in row.allocation.per_work_package:
                cost_by_work_package[wp.work_package_id] += wp.cost

        total_cost = round_half_up(sum(row.allocation.project_cost for row in rows), 2)
        budget = float(project.budget) if project.budget is not None else None
        return ProjectCostSchema(
            project_id=str(project.id),
            project_name=project.name,
            assignments=rows,
            total_days=round_half_up(sum(row.allocation.total_days for row in rows), 1),
            total_cost=total_cost,
            cost_by_work_package={k: round_half_up(v, 2) for k, v in cost_by_work_package.items()},
            budget=budget,
            budget_remaining=round_half_up(budget - total_cost, 2) if budget is not None else None,
        )


class StaffingKPIService:
    """Service class for project staffing KPIs."""

    @classmethod
    def project_kpis(cls, project: Project) -> StaffingKPIMetricsSchema:
        holidays = RecordService.holiday_records()
        assignments = list(CostService.project_assignments(project))

        available_total = 0
        allocated_total = 0.0
        days_by_employee: DefaultDict[str, float] = defaultdict(float)
        for assignment in assignments:
            row = AllocationService.assignment_allocation(assignment, holidays)
            available_total += row.allocation.available
            allocated_total += row.allocation.total_days
            days_by_employee[row.employee_id] += row.allocation.total_days

        employee_days = list(days_by_employee.values())
        utilization_rate = allocated_total / available_total if available_total else 0.0

        return StaffingKPIMetricsSchema(
            available_days=available_total,
            allocated_days=round_half_up(allocated_total, 1),
            utilization_rate=round_half_up(utilization_rate, 3),
            max_employee_days=round_half_up(max(employee_days, default=0.0), 1),
            gini_coefficient=round_half_up(cls._calculate_gini_coefficient(employee_days), 3),
            total_employees=len(employee_days),
            total_assignments=len(assignments),
        )

    @staticmethod
    def _calculate_gini_coefficient(values):
        """Calculate Gini coefficient for a list of values."""
        if len(values) <= 1 or not any(values):
            return 0.0
        return float(gini.Gini(values).g)
