import json
import logging
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.dateparse import parse_date

from staffing.models import (
    Absence, Assignment, Company, Employee, Holiday, Project, WorkPackage, WorkPackageShare
)

logger = logging.getLogger(__name__)

PROJECT_STATUS = {"aktiv": "active", "pausiert": "paused", "abgeschlossen": "done"}
WORK_PACKAGE_STATUS = {"offen": "open", "in_arbeit": "in_progress", "in_bearbeitung": "in_progress",
                       "erledigt": "done", "abgeschlossen": "done"}
ABSENCE_KIND = {"urlaub": "vacation", "krank": "sick"}


def _date(value):
    return parse_date(value[:10]) if value else None


class Command(BaseCommand):
    help = "Load a backup export (seed-data.json) of companies, employees and assignments."

    def add_arguments(self, parser):
        parser.add_argument(
            "--truncate",
            action="store_true",
            help="Delete existing data before loading.",
        )
        parser.add_argument(
            "--file",
            default="seed-data.json",
            help="Path of the export file (default: seed-data.json).",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        path = Path(options["file"]).resolve()
        if not path.exists():
            raise CommandError(f"{path} not found")
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        # 1. optional clean
        if options["truncate"]:
            self.stdout.write("Deleting existing records…")
            Company.objects.all().delete()
            Employee.objects.all().delete()
            Holiday.objects.all().delete()

        # 2. companies, projects and the work package forest
        work_packages = []
        for up in data.get("ueberProjekte", []):
            company, _ = Company.objects.update_or_create(
                id=up["id"],
                defaults={
                    "name": up["name"],
                    "description": up.get("beschreibung", ""),
                    "company_type": up.get("unternehmensTyp", "kmu"),
                },
            )
            for p in up.get("projekte", []):
                project, _ = Project.objects.update_or_create(
                    id=p["id"],
                    defaults={
                        "company": company,
                        "name": p["name"],
                        "description": p.get("beschreibung", ""),
                        "status": PROJECT_STATUS.get(p.get("status"), p.get("status") or "active"),
                        "start_date": _date(p.get("startDatum")),
                        "end_date": _date(p.get("endDatum")),
                        "budget": p.get("budget"),
                    },
                )
                work_packages += self._load_work_packages(project, p.get("arbeitspakete", []), None)

        # 3. employees and their absences
        absences = []
        for ma in data.get("mitarbeiter", []):
            employee, _ = Employee.objects.update_or_create(
                id=ma["id"],
                defaults={
                    "name": ma["name"],
                    "position": ma.get("position", ""),
                    "weekly_hours": ma.get("wochenStunden") or 40,
                    "leave_days": ma.get("jahresUrlaub") or 30,
                    "observes_holidays": ma.get("feiertagePflicht", True) is not False,
                    "annual_salary": ma.get("gehalt") or 0,
                    "annual_on_costs": ma.get("lohnnebenkosten") or 0,
                },
            )
            for b in ma.get("blockierungen", []):
                start, end = _date(b.get("von")), _date(b.get("bis"))
                if not start or not end:
                    logger.warning("Skipping absence %s of %s without dates", b.get("id"), employee.name)
                    continue
                absences.append(Absence(
                    id=b["id"],
                    employee=employee,
                    kind=ABSENCE_KIND.get(b.get("typ"), b.get("typ")),
                    start_date=start,
                    end_date=end,
                    note=b.get("notiz", ""),
                ))
        Absence.objects.bulk_create(absences, ignore_conflicts=True)

        # 4. assignments and work package distributions
        shares = []
        for zw in data.get("zuweisungen", []):
            start, end = _date(zw.get("von")), _date(zw.get("bis"))
            if not start or not end:
                logger.warning("Skipping assignment %s without engagement window", zw.get("id"))
                continue
            assignment, _ = Assignment.objects.update_or_create(
                id=zw["id"],
                defaults={
                    "employee_id": zw["mitarbeiterId"],
                    "project_id": zw["projektId"],
                    "percent": zw["prozentAnteil"],
                    "start_date": start,
                    "end_date": end,
                },
            )
            shares += [
                WorkPackageShare(
                    assignment=assignment,
                    work_package_id=av["arbeitspaketId"],
                    percent=av["prozent"],
                )
                for av in zw.get("arbeitspaketVerteilung", [])
            ]
        WorkPackageShare.objects.bulk_create(shares, ignore_conflicts=True)

        # 5. holidays
        Holiday.objects.bulk_create(
            [Holiday(date=_date(f["datum"]), name=f["name"]) for f in data.get("feiertage", [])],
            ignore_conflicts=True,
        )

        self.stdout.write(self.style.SUCCESS(
            f"✅  Seed data loaded: {len(work_packages)} work packages, {len(absences)} absences, "
            f"{len(shares)} work package shares"
        ))

    def _load_work_packages(self, project, nodes, parent):
        loaded = []
        for position, ap in enumerate(nodes):
            work_package, _ = WorkPackage.objects.update_or_create(
                id=ap["id"],
                defaults={
                    "project": project,
                    "parent": parent,
                    "name": ap["name"],
                    "description": ap.get("beschreibung", ""),
                    "status": WORK_PACKAGE_STATUS.get(ap.get("status"), ap.get("status") or "open"),
                    "start_date": _date(ap.get("startDatum")),
                    "end_date": _date(ap.get("endDatum")),
                    "position": position,
                },
            )
            loaded.append(work_package)
            loaded += self._load_work_packages(project, ap.get("unterPakete") or [], work_package)
        return loaded
