from datetime import date
from uuid import UUID

from django.http import HttpRequest
from django.shortcuts import get_object_or_404
from ninja import NinjaAPI, Swagger

from .models import Assignment, Employee, Project, WorkPackage
from .schemas import (
    AssignmentAllocationSchema, AvailabilityResult, EmployeeCalendarSchema, PlacementResponseSchema,
    ProjectCostSchema, StaffingKPIMetricsSchema, WorkPackageCalendarSchema, WorkPackageNodeSchema
)
from .services import AllocationService, CalendarService, CostService, StaffingKPIService, WorkPackageService

api = NinjaAPI(docs=Swagger(settings={"persistAuthorization": True}))


def _default_range(start_date: date | None, end_date: date | None) -> tuple[date, date]:
    if not start_date:
        start_date = date.today()
    if not end_date:
        end_date = start_date
    return start_date, end_date


@api.get("/employees/{employee_id}/availability", response=AvailabilityResult)
def get_employee_availability(request: HttpRequest, employee_id: UUID,
                              start_date: date | None = None, end_date: date | None = None) -> AvailabilityResult:
    """
    Business days, blocked days and available days of an employee in a range.
    Unknown employees and reversed ranges yield zeros.
    """
    start_date, end_date = _default_range(start_date, end_date)
    return AllocationService.employee_availability(employee_id, start_date, end_date)


@api.get("/employees/{employee_id}/calendar", response=EmployeeCalendarSchema)
def get_employee_calendar(request: HttpRequest, employee_id: UUID,
                          start_date: date | None = None, end_date: date | None = None) -> EmployeeCalendarSchema:
    """
    Day-by-day calendar of an employee: why a day is blocked, and how many
    hours are placed on each work package.
    """
    employee = get_object_or_404(Employee.objects.prefetch_related("absences"), pk=employee_id)
    start_date, end_date = _default_range(start_date, end_date)
    return CalendarService.employee_calendar(employee, start_date, end_date)


@api.get("/assignments/{assignment_id}/allocation", response=AssignmentAllocationSchema)
def get_assignment_allocation(request: HttpRequest, assignment_id: UUID) -> AssignmentAllocationSchema:
    """
    Fractional days and cost of an assignment, split by work package.
    Shares adding up to more than 100% are reported in ``warnings``.
    """
    assignment = get_object_or_404(Assignment.objects.select_related("employee"), pk=assignment_id)
    return AllocationService.assignment_allocation(assignment)


@api.get("/assignments/{assignment_id}/placement", response=PlacementResponseSchema)
def get_assignment_placement(request: HttpRequest, assignment_id: UUID, work_package_id: UUID) -> PlacementResponseSchema:
    """Concrete days worked on one work package of an assignment."""
    assignment = get_object_or_404(Assignment.objects.select_related("employee"), pk=assignment_id)
    work_package = get_object_or_404(WorkPackage, pk=work_package_id, project_id=assignment.project_id)
    return AllocationService.assignment_placement(assignment, work_package)


@api.get("/work-packages/{work_package_id}/calendar", response=WorkPackageCalendarSchema)
def get_work_package_calendar(request: HttpRequest, work_package_id: UUID,
                              start_date: date | None = None, end_date: date | None = None) -> WorkPackageCalendarSchema:
    """Hours per employee and day; defaults to the work package's effective range."""
    work_package = get_object_or_404(WorkPackage.objects.select_related("project", "parent"), pk=work_package_id)
    return CalendarService.work_package_calendar(work_package, start_date, end_date)


@api.get("/projects/{project_id}/work-packages", response=list[WorkPackageNodeSchema])
def get_project_work_packages(request: HttpRequest, project_id: UUID) -> list[WorkPackageNodeSchema]:
    """Work package forest of a project, with each node's effective date range."""
    project = get_object_or_404(Project, pk=project_id)
    return WorkPackageService.work_package_tree(project)


@api.get("/projects/{project_id}/costs", response=ProjectCostSchema)
def get_project_costs(request: HttpRequest, project_id: UUID) -> ProjectCostSchema:
    project = get_object_or_404(Project, pk=project_id)
    return CostService.project_costs(project)


@api.get("/projects/{project_id}/kpis", response=StaffingKPIMetricsSchema)
def get_project_kpis(request: HttpRequest, project_id: UUID) -> StaffingKPIMetricsSchema:
    """
    Staffing KPIs of a project.

    KPIs returned:
    - utilization_rate: allocated days / available days in the engagement windows
    - max_employee_days: highest allocated day total of a single employee
    - gini_coefficient: how evenly allocated days spread over employees (0 = perfectly equal)
    """
    project = get_object_or_404(Project, pk=project_id)
    return StaffingKPIService.project_kpis(project)
