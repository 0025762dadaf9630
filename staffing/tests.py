import io
import json
import tempfile
import uuid
from datetime import date, timedelta
from pathlib import Path

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase
from django.test.client import Client

from .allocation import allocate, daily_rate, distribution_warnings, effective_working_days_per_year, round_half_up
from .models import Absence, Assignment, Company, Employee, Holiday, Project, WorkPackage, WorkPackageShare
from .placement import SeededRandom, adjacent_pairs, place_days, placement_seed, split_quota
from .schemas import AbsenceRecord, BlockReason, EmployeeRecord, HolidayRecord, ShareRecord
from .services import StaffingKPIService, WorkPackageService
from .workdays import (
    availability, available_dates, available_days, blocked_days, blocked_reason, count_business_days,
    holiday_map, is_business_day
)

NEW_YEAR = [HolidayRecord(day=date(2024, 1, 1), name="Neujahr")]


def make_employee(**kwargs) -> EmployeeRecord:
    defaults = {"id": "emp-1", "name": "Anna Becker"}
    defaults.update(kwargs)
    return EmployeeRecord(**defaults)


class CalendarPrimitivesTest(SimpleTestCase):
    """Weekday arithmetic without any holiday knowledge."""

    def test_weekend_is_not_business_day(self):
        self.assertTrue(is_business_day(date(2024, 1, 5)))   # Friday
        self.assertFalse(is_business_day(date(2024, 1, 6)))  # Saturday
        self.assertFalse(is_business_day(date(2024, 1, 7)))  # Sunday

    def test_count_business_days(self):
        self.assertEqual(count_business_days(date(2024, 1, 1), date(2024, 1, 7)), 5)
        self.assertEqual(count_business_days(date(2024, 1, 1), date(2024, 1, 31)), 23)
        self.assertEqual(count_business_days(date(2024, 1, 6), date(2024, 1, 6)), 0)
        self.assertEqual(count_business_days(date(2024, 1, 5), date(2024, 1, 8)), 2)

    def test_reversed_range_is_empty(self):
        start, end = date(2024, 1, 7), date(2024, 1, 1)
        employee = make_employee()
        self.assertEqual(count_business_days(start, end), 0)
        self.assertEqual(blocked_days(employee, start, end, NEW_YEAR), 0)
        self.assertEqual(available_days(employee, start, end, NEW_YEAR), 0)


class AvailabilityResolverTest(SimpleTestCase):
    """Absences and holidays block whole business days."""

    def test_holiday_week(self):
        result = availability(make_employee(), date(2024, 1, 1), date(2024, 1, 7), NEW_YEAR)
        self.assertEqual(result.business_days, 5)
        self.assertEqual(result.blocked, 1)
        self.assertEqual(result.available, 4)

    def test_holiday_ignored_when_not_observed(self):
        employee = make_employee(observes_holidays=False)
        self.assertEqual(blocked_days(employee, date(2024, 1, 1), date(2024, 1, 7), NEW_YEAR), 0)
        self.assertEqual(available_days(employee, date(2024, 1, 1), date(2024, 1, 7), NEW_YEAR), 5)

    def test_vacation_over_weekend_not_double_counted(self):
        employee = make_employee(absences=[
            AbsenceRecord(kind="vacation", start=date(2024, 1, 3), end=date(2024, 1, 7)),
        ])
        result = availability(employee, date(2024, 1, 1), date(2024, 1, 7), NEW_YEAR)
        self.assertEqual(result.blocked, 4)
        self.assertEqual(result.available, 1)
        self.assertEqual(available_dates(employee, date(2024, 1, 1), date(2024, 1, 7), NEW_YEAR), [date(2024, 1, 2)])

    def test_absence_ranks_before_holiday(self):
        employee = make_employee(absences=[
            AbsenceRecord(kind="sick", start=date(2024, 1, 1), end=date(2024, 1, 2)),
        ])
        holidays = holiday_map(NEW_YEAR)
        self.assertEqual(blocked_reason(employee, date(2024, 1, 1), holidays), BlockReason.SICK)
        self.assertEqual(blocked_reason(employee, date(2024, 1, 3), holidays), BlockReason.NONE)
        self.assertEqual(blocked_days(employee, date(2024, 1, 1), date(2024, 1, 7), NEW_YEAR), 2)

    def test_weekend_never_blocked(self):
        employee = make_employee(absences=[
            AbsenceRecord(kind="vacation", start=date(2024, 1, 6), end=date(2024, 1, 7)),
        ])
        self.assertEqual(blocked_reason(employee, date(2024, 1, 6), {}), BlockReason.NONE)

    def test_blocked_never_exceeds_business_days(self):
        employee = make_employee(absences=[
            AbsenceRecord(kind="vacation", start=date(2023, 12, 1), end=date(2024, 2, 1)),
            AbsenceRecord(kind="sick", start=date(2024, 1, 10), end=date(2024, 1, 12)),
        ])
        result = availability(employee, date(2024, 1, 1), date(2024, 1, 31), NEW_YEAR)
        self.assertEqual(result.blocked, result.business_days)
        self.assertEqual(result.available, 0)

    def test_unknown_employee_has_no_availability(self):
        result = availability(None, date(2024, 1, 1), date(2024, 1, 7), NEW_YEAR)
        self.assertEqual((result.business_days, result.blocked, result.available), (0, 0, 0))


class AllocationCalculatorTest(SimpleTestCase):
    """Percent of available days, split by work package, priced per day."""

    def setUp(self):
        self.employee = make_employee(
            annual_salary=60000, annual_on_costs=12000, weekly_hours=40, leave_days=30,
            observes_holidays=False
        )

    def test_round_half_up(self):
        self.assertEqual(round_half_up(2.675, 2), 2.68)
        self.assertEqual(round_half_up(0.25, 1), 0.3)
        self.assertEqual(round_half_up(313.0434782, 2), 313.04)

    def test_half_time_on_holiday_week(self):
        result = allocate(make_employee(), 50, date(2024, 1, 1), date(2024, 1, 7), [], NEW_YEAR)
        self.assertEqual(result.available, 4)
        self.assertEqual(result.total_days, 2.0)
        self.assertEqual(result.per_work_package, [])

    def test_daily_rate(self):
        self.assertEqual(effective_working_days_per_year(self.employee, 0), 230)
        self.assertAlmostEqual(daily_rate(self.employee, 0), 72000 / 230)
        self.assertEqual(round_half_up(daily_rate(self.employee, 0), 2), 313.04)

    def test_daily_rate_subtracts_observed_holidays(self):
        employee = make_employee(annual_salary=60000, annual_on_costs=12000)
        self.assertEqual(effective_working_days_per_year(employee, 9), 221)
        self.assertEqual(effective_working_days_per_year(self.employee, 9), 230)

    def test_daily_rate_edge_cases(self):
        self.assertEqual(daily_rate(make_employee(), 0), 0.0)
        self.assertEqual(daily_rate(None, 0), 0.0)
        tiny = make_employee(weekly_hours=1, leave_days=30, annual_salary=1000)
        self.assertEqual(effective_working_days_per_year(tiny, 0), 1)

    def test_distribution_and_costs(self):
        shares = [ShareRecord(work_package_id="wp-1", percent=60), ShareRecord(work_package_id="wp-2", percent=50)]
        result = allocate(self.employee, 50, date(2024, 1, 1), date(2024, 1, 7), shares, NEW_YEAR)

        self.assertEqual(result.available, 5)
        self.assertEqual(result.total_days, 2.5)
        self.assertEqual(result.daily_rate, 313.04)
        self.assertEqual(result.project_cost, 782.61)

        wp1, wp2 = result.per_work_package
        self.assertAlmostEqual(wp1.days, 1.5)
        self.assertAlmostEqual(wp2.days, 1.25)
        self.assertEqual(wp1.cost, 469.57)
        self.assertEqual(wp2.cost, 391.30)

    def test_over_hundred_percent_only_warns(self):
        shares = [ShareRecord(work_package_id="wp-1", percent=60), ShareRecord(work_package_id="wp-2", percent=50)]
        self.assertEqual(len(distribution_warnings(shares)), 1)
        self.assertEqual(distribution_warnings(shares[:1]), [])

    def test_zero_results(self):
        shares = [ShareRecord(work_package_id="wp-1", percent=100)]
        zero_percent = allocate(self.employee, 0, date(2024, 1, 1), date(2024, 1, 31), shares, [])
        self.assertEqual(zero_percent.total_days, 0)
        self.assertEqual(zero_percent.per_work_package[0].days, 0)

        on_vacation = make_employee(absences=[
            AbsenceRecord(kind="vacation", start=date(2024, 1, 1), end=date(2024, 1, 31)),
        ])
        no_time = allocate(on_vacation, 80, date(2024, 1, 1), date(2024, 1, 31), shares, [])
        self.assertEqual(no_time.available, 0)
        self.assertEqual(no_time.total_days, 0)
        self.assertEqual(no_time.per_work_package[0].days, 0)

        reversed_range = allocate(self.employee, 50, date(2024, 1, 31), date(2024, 1, 1), shares, [])
        self.assertEqual(reversed_range.total_days, 0)
        self.assertEqual(reversed_range.project_cost, 0)

        unknown = allocate(None, 50, date(2024, 1, 1), date(2024, 1, 31), shares, [])
        self.assertEqual(unknown.total_days, 0)
        self.assertEqual(unknown.per_work_package, [])


class DayPlacementTest(SimpleTestCase):
    """Deterministic mapping of a fractional quota to concrete dates."""

    def setUp(self):
        # Mondays only: no two dates are close enough to form a pair
        self.mondays = [date(2024, 1, 1) + timedelta(weeks=k) for k in range(10)]
        # Two full business weeks
        self.weekdays = [d for d in (date(2024, 1, 8) + timedelta(days=k) for k in range(12)) if is_business_day(d)]

    def test_seed_and_generator(self):
        self.assertEqual(placement_seed("a", "b"), 3105)
        self.assertEqual(placement_seed("emp-1", "wp-1"), placement_seed("emp-1", "wp-1"))
        self.assertNotEqual(placement_seed("emp-1", "wp-1"), placement_seed("emp-1", "wp-2"))
        long_seed = placement_seed(str(uuid.UUID(int=2 ** 127)), str(uuid.UUID(int=12345)))
        self.assertGreaterEqual(long_seed, 0)
        # U+1F600 folds as the surrogate pair 0xD83D, 0xDE00
        self.assertEqual(placement_seed("a", "\U0001F600"), (97 * 31 + 0xD83D) * 31 + 0xDE00)
        self.assertEqual(placement_seed("a", "\U0001F600"), 1866116)

        rng = SeededRandom(0)
        self.assertEqual(rng.next(), 1013904223 / 2 ** 31)
        values = [SeededRandom(42).next() for _ in range(3)]
        self.assertEqual(len(set(values)), 1)
        self.assertTrue(all(0 <= v < 1 for v in values))

    def test_split_quota(self):
        self.assertEqual(split_quota(2.0), (2, 0))
        self.assertEqual(split_quota(6.5), (6, 4))
        self.assertEqual(split_quota(0.5), (0, 4))
        self.assertEqual(split_quota(2.95), (3, 0))
        self.assertEqual(split_quota(0), (0, 0))
        self.assertEqual(split_quota(-1.5), (0, 0))

    def test_pairs_bridge_weekends(self):
        pairs = adjacent_pairs(self.weekdays)
        self.assertEqual(len(pairs), 9)
        self.assertIn((4, 5), pairs)  # Friday -> Monday
        self.assertEqual(adjacent_pairs(self.mondays), [])

    def test_two_days_on_isolated_dates(self):
        first = place_days("emp-1", "wp-1", self.mondays, 2.0)
        second = place_days("emp-1", "wp-1", self.mondays, 2.0)

        self.assertEqual(len(first.worked_dates), 2)
        self.assertTrue(all(first.hours_on(d) == 8 for d in first.worked_dates))
        self.assertIsNone(first.partial_date)
        self.assertEqual(first.worked_dates, second.worked_dates)
        self.assertEqual(first.partial_date, second.partial_date)

        # spread: one date in each half of the range
        indices = sorted(self.mondays.index(d) for d in first.worked_dates)
        self.assertLess(indices[0], 5)
        self.assertGreaterEqual(indices[1], 5)

    def test_demand_exceeds_supply(self):
        dates = self.weekdays[:6]
        placement = place_days("emp-1", "wp-1", dates, 6.5)
        self.assertEqual(placement.worked_dates, dates)
        self.assertEqual(placement.partial_date, dates[-1])
        self.assertEqual(placement.partial_hours, 4)
        self.assertEqual([placement.hours_on(d) for d in dates], [8, 8, 8, 8, 8, 4])

    def test_exact_supply_without_remainder(self):
        dates = self.weekdays[:3]
        placement = place_days("emp-1", "wp-1", dates, 3.0)
        self.assertEqual(placement.worked_dates, dates)
        self.assertEqual(sum(placement.hours_by_date.values()), 24)

    def test_prefers_working_pairs(self):
        placement = place_days("emp-1", "wp-1", self.weekdays, 4.0)
        indices = sorted(self.weekdays.index(d) for d in placement.worked_dates)
        self.assertEqual(len(indices), 4)
        self.assertEqual(indices[1], indices[0] + 1)
        self.assertEqual(indices[3], indices[2] + 1)

    def test_partial_day_goes_last(self):
        placement = place_days("emp-2", "wp-9", self.weekdays, 3.25)
        self.assertEqual(len(placement.worked_dates), 4)
        self.assertEqual(placement.partial_date, placement.worked_dates[-1])
        self.assertEqual(placement.partial_hours, 2)
        self.assertEqual(sum(placement.hours_by_date.values()), 26)

    def test_slot_conservation(self):
        for quota in (0.1, 0.5, 1.0, 1.5, 2.7, 4.4, 5.0, 7.9, 9.0):
            placement = place_days("emp-3", "wp-3", self.weekdays, quota)
            full_days, remainder = split_quota(quota)
            self.assertEqual(len(placement.worked_dates), full_days + (1 if remainder else 0), quota)
        self.assertEqual(len(place_days("emp-3", "wp-3", self.weekdays, 14.0).worked_dates), 10)

    def test_empty_inputs(self):
        self.assertEqual(place_days("emp-1", "wp-1", [], 3.0).worked_dates, [])
        self.assertEqual(place_days("emp-1", "wp-1", self.weekdays, 0).worked_dates, [])


class StaffingTestBase(TestCase):
    """Base test class with a company, project tree, employee and assignment."""

    def setUp(self):
        self.client = Client()
        Holiday.objects.create(date=date(2024, 1, 1), name="Neujahr")

        self.company = Company.objects.create(name="TechNova")
        self.project = Project.objects.create(
            company=self.company, name="CloudPilot",
            start_date=date(2024, 1, 1), end_date=date(2024, 3, 31), budget=10000
        )
        self.wp_parent = WorkPackage.objects.create(
            project=self.project, name="AP 1",
            start_date=date(2024, 1, 8), end_date=date(2024, 1, 19)
        )
        self.wp_child = WorkPackage.objects.create(project=self.project, name="AP 1.1", parent=self.wp_parent)
        self.wp_open = WorkPackage.objects.create(project=self.project, name="AP 2", position=1)

        self.employee = Employee.objects.create(
            name="Anna Becker", weekly_hours=40, leave_days=30,
            annual_salary=60000, annual_on_costs=12000
        )
        self.assignment = Assignment.objects.create(
            employee=self.employee, project=self.project, percent=50,
            start_date=date(2024, 1, 1), end_date=date(2024, 1, 31)
        )
        WorkPackageShare.objects.create(assignment=self.assignment, work_package=self.wp_parent, percent=50)

    def get_json(self, path, params=None):
        response = self.client.get(f"/api{path}", params or {})
        self.assertEqual(response.status_code, 200, response.content)
        return response.json()


class WorkPackageTreeTest(StaffingTestBase):

    def test_effective_range_inherits_from_ancestors(self):
        self.assertEqual(
            WorkPackageService.effective_range(self.wp_child),
            (date(2024, 1, 8), date(2024, 1, 19))
        )
        self.assertEqual(
            WorkPackageService.effective_range(self.wp_open),
            (date(2024, 1, 1), date(2024, 3, 31))
        )

    def test_effective_range_resolves_each_bound(self):
        grandchild = WorkPackage.objects.create(
            project=self.project, name="AP 1.1.1", parent=self.wp_child, start_date=date(2024, 1, 15)
        )
        self.assertEqual(
            WorkPackageService.effective_range(grandchild),
            (date(2024, 1, 15), date(2024, 1, 19))
        )

    def test_tree(self):
        tree = WorkPackageService.work_package_tree(self.project)
        self.assertEqual([node.name for node in tree], ["AP 1", "AP 2"])
        self.assertEqual(tree[0].children[0].name, "AP 1.1")

    def test_tree_endpoint(self):
        tree = self.get_json(f"/projects/{self.project.id}/work-packages")
        self.assertEqual([node["name"] for node in tree], ["AP 1", "AP 2"])
        child = tree[0]["children"][0]
        self.assertEqual(child["id"], str(self.wp_child.id))
        self.assertEqual((child["effective_start"], child["effective_end"]), ("2024-01-08", "2024-01-19"))
        self.assertEqual((tree[1]["effective_start"], tree[1]["effective_end"]), ("2024-01-01", "2024-03-31"))
        self.assertEqual(tree[1]["children"], [])

    def test_tree_endpoint_unknown_project(self):
        response = self.client.get(f"/api/projects/{uuid.uuid4()}/work-packages")
        self.assertEqual(response.status_code, 404)


class ModelValidationTest(StaffingTestBase):

    def test_absence_range_validation(self):
        absence = Absence(employee=self.employee, kind="vacation",
                          start_date=date(2024, 2, 2), end_date=date(2024, 2, 1))
        with self.assertRaises(ValidationError):
            absence.full_clean()

    def test_project_range_validation(self):
        project = Project(company=self.company, name="Reversed",
                          start_date=date(2024, 3, 1), end_date=date(2024, 2, 1))
        with self.assertRaises(ValidationError) as ctx:
            project.full_clean()
        self.assertIn("end_date", ctx.exception.message_dict)

    def test_work_package_range_validation(self):
        work_package = WorkPackage(project=self.project, name="Reversed",
                                   start_date=date(2024, 2, 2), end_date=date(2024, 2, 1))
        with self.assertRaises(ValidationError) as ctx:
            work_package.full_clean()
        self.assertIn("end_date", ctx.exception.message_dict)

    def test_work_package_start_after_inherited_end(self):
        # AP 1 ends 2024-01-19, so the child's effective range would be reversed
        work_package = WorkPackage(project=self.project, parent=self.wp_parent, name="Late",
                                   start_date=date(2024, 1, 25))
        with self.assertRaises(ValidationError) as ctx:
            work_package.full_clean()
        self.assertIn("end_date", ctx.exception.message_dict)

    def test_work_package_start_after_project_end(self):
        work_package = WorkPackage(project=self.project, name="After project",
                                   start_date=date(2024, 4, 2))
        with self.assertRaises(ValidationError):
            work_package.full_clean()

    def test_work_package_inside_inherited_range_is_valid(self):
        work_package = WorkPackage(project=self.project, parent=self.wp_parent, name="Inside",
                                   start_date=date(2024, 1, 15))
        work_package.full_clean()
        self.assertEqual(work_package.effective_range(), (date(2024, 1, 15), date(2024, 1, 19)))

    def test_share_must_belong_to_assignment_project(self):
        other = Project.objects.create(company=self.company, name="Other")
        foreign = WorkPackage.objects.create(project=other, name="Foreign")
        share = WorkPackageShare(assignment=self.assignment, work_package=foreign, percent=10)
        with self.assertRaises(ValidationError):
            share.clean()

    def test_deleting_employee_removes_owned_records(self):
        Absence.objects.create(employee=self.employee, kind="sick",
                               start_date=date(2024, 1, 2), end_date=date(2024, 1, 2))
        self.employee.delete()
        self.assertEqual(Absence.objects.count(), 0)
        self.assertEqual(WorkPackageShare.objects.count(), 0)
        self.assertEqual(Holiday.objects.count(), 1)


class AllocationAPITest(StaffingTestBase):

    def test_availability(self):
        data = self.get_json(f"/employees/{self.employee.id}/availability",
                             {"start_date": "2024-01-01", "end_date": "2024-01-07"})
        self.assertEqual(data, {"business_days": 5, "blocked": 1, "available": 4})

    def test_availability_of_unknown_employee_is_zero(self):
        data = self.get_json(f"/employees/{uuid.uuid4()}/availability",
                             {"start_date": "2024-01-01", "end_date": "2024-01-07"})
        self.assertEqual(data, {"business_days": 0, "blocked": 0, "available": 0})

    def test_allocation(self):
        data = self.get_json(f"/assignments/{self.assignment.id}/allocation")
        allocation = data["allocation"]
        self.assertEqual(allocation["available"], 22)
        self.assertEqual(allocation["total_days"], 11.0)
        self.assertEqual(allocation["daily_rate"], 314.41)
        self.assertEqual(allocation["project_cost"], 3458.52)
        self.assertEqual(allocation["per_work_package"][0]["days"], 5.5)
        self.assertEqual(allocation["per_work_package"][0]["cost"], 1729.26)
        self.assertEqual(data["distribution_total"], 50)
        self.assertEqual(data["warnings"], [])

    def test_allocation_warns_above_hundred_percent(self):
        WorkPackageShare.objects.create(assignment=self.assignment, work_package=self.wp_open, percent=70)
        data = self.get_json(f"/assignments/{self.assignment.id}/allocation")
        self.assertEqual(data["distribution_total"], 120)
        self.assertEqual(len(data["warnings"]), 1)

    def test_placement_is_reproducible(self):
        path = f"/assignments/{self.assignment.id}/placement"
        params = {"work_package_id": str(self.wp_parent.id)}
        first = self.get_json(path, params)
        second = self.get_json(path, params)

        self.assertEqual(first, second)
        self.assertEqual(first["quota_days"], 5.5)
        self.assertEqual(len(first["worked_dates"]), 6)
        self.assertEqual(first["partial_hours"], 4)
        self.assertEqual(first["partial_date"], first["worked_dates"][-1])
        self.assertEqual(sum(first["hours_by_date"].values()), 44)
        for day in first["worked_dates"]:
            self.assertTrue("2024-01-08" <= day <= "2024-01-19")

    def test_placement_without_share_is_empty(self):
        data = self.get_json(f"/assignments/{self.assignment.id}/placement",
                             {"work_package_id": str(self.wp_open.id)})
        self.assertEqual(data["quota_days"], 0)
        self.assertEqual(data["worked_dates"], [])

    def test_unknown_records_return_404(self):
        self.assertEqual(self.client.get(f"/api/assignments/{uuid.uuid4()}/allocation").status_code, 404)
        self.assertEqual(self.client.get(f"/api/projects/{uuid.uuid4()}/costs").status_code, 404)


class CalendarAPITest(StaffingTestBase):

    def test_employee_calendar(self):
        data = self.get_json(f"/employees/{self.employee.id}/calendar",
                             {"start_date": "2024-01-01", "end_date": "2024-01-19"})
        days = {row["day"]: row for row in data["days"]}

        self.assertEqual(len(days), 19)
        self.assertEqual(days["2024-01-01"]["blocked"], "holiday")
        self.assertEqual(days["2024-01-01"]["holiday_name"], "Neujahr")
        self.assertEqual(days["2024-01-06"]["blocked"], "none")
        self.assertEqual(sum(row["total_hours"] for row in data["days"]), 44)
        self.assertTrue(all(row["total_hours"] == 0 for d, row in days.items() if d < "2024-01-08"))

    def test_employee_calendar_matches_placement(self):
        placement = self.get_json(f"/assignments/{self.assignment.id}/placement",
                                  {"work_package_id": str(self.wp_parent.id)})
        calendar = self.get_json(f"/employees/{self.employee.id}/calendar",
                                 {"start_date": "2024-01-01", "end_date": "2024-01-31"})
        worked = [row["day"] for row in calendar["days"] if row["total_hours"] > 0]
        self.assertEqual(worked, placement["worked_dates"])

    def test_employee_calendar_shows_absence(self):
        Absence.objects.create(employee=self.employee, kind="vacation",
                               start_date=date(2024, 1, 1), end_date=date(2024, 1, 2))
        data = self.get_json(f"/employees/{self.employee.id}/calendar",
                             {"start_date": "2024-01-01", "end_date": "2024-01-02"})
        self.assertEqual([row["blocked"] for row in data["days"]], ["vacation", "vacation"])

    def test_work_package_calendar(self):
        data = self.get_json(f"/work-packages/{self.wp_parent.id}/calendar")
        self.assertEqual(data["effective_start"], "2024-01-08")
        self.assertEqual(data["effective_end"], "2024-01-19")
        self.assertEqual(len(data["workers"]), 1)
        worker = data["workers"][0]
        self.assertEqual(worker["employee_name"], "Anna Becker")
        self.assertEqual(worker["quota_days"], 5.5)
        self.assertEqual(sum(worker["daily_hours"].values()), 44)


class CostAndKPITest(StaffingTestBase):

    def setUp(self):
        super().setUp()
        self.second = Employee.objects.create(name="Ben Vogel", annual_salary=0, annual_on_costs=0)
        Assignment.objects.create(
            employee=self.second, project=self.project, percent=100,
            start_date=date(2024, 1, 8), end_date=date(2024, 1, 12)
        )

    def test_project_costs(self):
        data = self.get_json(f"/projects/{self.project.id}/costs")
        self.assertEqual(len(data["assignments"]), 2)
        self.assertEqual(data["total_days"], 16.0)
        self.assertEqual(data["total_cost"], 3458.52)
        self.assertEqual(data["cost_by_work_package"], {str(self.wp_parent.id): 1729.26})
        self.assertEqual(data["budget"], 10000)
        self.assertEqual(data["budget_remaining"], 6541.48)

    def test_project_kpis(self):
        data = self.get_json(f"/projects/{self.project.id}/kpis")
        self.assertEqual(data["available_days"], 27)
        self.assertEqual(data["allocated_days"], 16.0)
        self.assertEqual(data["utilization_rate"], 0.593)
        self.assertEqual(data["max_employee_days"], 11.0)
        self.assertEqual(data["total_employees"], 2)
        self.assertEqual(data["total_assignments"], 2)
        self.assertGreater(data["gini_coefficient"], 0)

    def test_kpis_round_half_up(self):
        project = Project.objects.create(company=self.company, name="Tie")
        employee = Employee.objects.create(name="Carla Neumann", annual_salary=0, annual_on_costs=0)
        # 16 business days at 31% -> 5.0 days, 5 / 16 = 0.3125
        Assignment.objects.create(
            employee=employee, project=project, percent=31,
            start_date=date(2024, 1, 8), end_date=date(2024, 1, 29)
        )
        data = self.get_json(f"/projects/{project.id}/kpis")
        self.assertEqual(data["available_days"], 16)
        self.assertEqual(data["allocated_days"], 5.0)
        self.assertEqual(data["utilization_rate"], 0.313)

    def test_gini_edge_cases(self):
        self.assertEqual(StaffingKPIService._calculate_gini_coefficient([]), 0.0)
        self.assertEqual(StaffingKPIService._calculate_gini_coefficient([4.0]), 0.0)
        self.assertEqual(StaffingKPIService._calculate_gini_coefficient([0.0, 0.0]), 0.0)
        self.assertAlmostEqual(StaffingKPIService._calculate_gini_coefficient([5.0, 5.0]), 0.0, places=6)

    def test_empty_project(self):
        empty = Project.objects.create(company=self.company, name="Empty")
        kpis = self.get_json(f"/projects/{empty.id}/kpis")
        self.assertEqual(kpis["utilization_rate"], 0.0)
        costs = self.get_json(f"/projects/{empty.id}/costs")
        self.assertEqual(costs["total_cost"], 0)
        self.assertIsNone(costs["budget"])


class LoadSeedDataCommandTest(TestCase):

    def test_loads_backup_export(self):
        ids = {name: str(uuid.uuid4()) for name in ("up", "p", "ap", "sub", "ma", "bl", "zw")}
        export = {
            "ueberProjekte": [{
                "id": ids["up"], "name": "TechNova", "beschreibung": "", "unternehmensTyp": "kmu",
                "projekte": [{
                    "id": ids["p"], "name": "CloudPilot", "status": "aktiv",
                    "startDatum": "2024-01-01", "endDatum": "2024-06-30",
                    "arbeitspakete": [{
                        "id": ids["ap"], "name": "AP 1", "status": "offen",
                        "startDatum": "2024-01-08", "endDatum": "2024-02-29",
                        "unterPakete": [{"id": ids["sub"], "name": "AP 1.1", "status": "offen",
                                         "startDatum": "", "endDatum": ""}],
                    }],
                }],
            }],
            "mitarbeiter": [{
                "id": ids["ma"], "name": "Anna Becker", "position": "Dev",
                "wochenStunden": 32, "jahresUrlaub": 28, "feiertagePflicht": False,
                "gehalt": 50000, "lohnnebenkosten": 10000,
                "blockierungen": [{"id": ids["bl"], "typ": "urlaub", "von": "2024-01-15",
                                   "bis": "2024-01-19", "notiz": ""}],
            }],
            "zuweisungen": [{
                "id": ids["zw"], "mitarbeiterId": ids["ma"], "projektId": ids["p"],
                "prozentAnteil": 40, "von": "2024-01-01", "bis": "2024-03-31",
                "arbeitspaketVerteilung": [{"arbeitspaketId": ids["sub"], "prozent": 100}],
            }],
            "feiertage": [{"datum": "2024-01-01", "name": "Neujahr"}],
        }
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "seed-data.json"
            path.write_text(json.dumps(export), encoding="utf-8")
            call_command("load_seed_data", file=str(path), stdout=io.StringIO())

        sub = WorkPackage.objects.get(pk=ids["sub"])
        self.assertEqual(str(sub.parent_id), ids["ap"])
        self.assertEqual(WorkPackageService.effective_range(sub), (date(2024, 1, 8), date(2024, 2, 29)))

        employee = Employee.objects.get(pk=ids["ma"])
        self.assertFalse(employee.observes_holidays)
        self.assertEqual(employee.absences.get().kind, "vacation")
        self.assertEqual(Assignment.objects.get(pk=ids["zw"]).shares.count(), 1)
        self.assertEqual(Holiday.objects.get().name, "Neujahr")
        self.assertEqual(Project.objects.get(pk=ids["p"]).status, "active")

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command("load_seed_data", file="/nonexistent/seed-data.json")
