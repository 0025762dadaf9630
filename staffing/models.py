import uuid

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Company(models.Model):
    TYPE_CHOICES = [
        ("kmu", "KMU"),
        ("large", "Large enterprise"),
        ("startup", "Start-up"),
        ("research", "Research institution"),
    ]

    id           = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name         = models.CharField(max_length=200)
    description  = models.TextField(blank=True, default="")
    company_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="kmu")


class Project(models.Model):
    STATUS_CHOICES = [
        ("active", "Active"),
        ("paused", "Paused"),
        ("done", "Done"),
    ]

    id          = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company     = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="projects"
    )
    name        = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    status      = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active")
    start_date  = models.DateField(null=True, blank=True)
    end_date    = models.DateField(null=True, blank=True)
    budget      = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    def clean(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError({"end_date": "End date must not be before start date."})


class WorkPackage(models.Model):
    STATUS_CHOICES = [
        ("open", "Open"),
        ("in_progress", "In progress"),
        ("done", "Done"),
    ]

    id          = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    project     = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="work_packages"
    )
    parent      = models.ForeignKey(
        "self",
        null=True, blank=True,
        on_delete=models.CASCADE,
        related_name="children"
    )
    name        = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    status      = models.CharField(max_length=20, choices=STATUS_CHOICES, default="open")
    start_date  = models.DateField(null=True, blank=True)
    end_date    = models.DateField(null=True, blank=True)
    position    = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "name"]

    def effective_range(self):
        """
        Resolve each bound from the node itself, then its nearest ancestor
        that has one, then the project.
        """
        start, end = self.start_date, self.end_date
        node = self.parent
        while node is not None and (start is None or end is None):
            start = start or node.start_date
            end = end or node.end_date
            node = node.parent
        project = self.project
        return start or project.start_date, end or project.end_date

    def clean(self):
        if self.parent_id and self.parent.project_id != self.project_id:
            raise ValidationError({"parent": "Parent work package belongs to another project."})
        start, end = self.effective_range()
        if start and end and start > end:
            raise ValidationError({"end_date": f"Effective end {end} is before effective start {start}."})


class Employee(models.Model):
    id                = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name              = models.CharField(max_length=100)
    position          = models.CharField(max_length=100, blank=True, default="")
    weekly_hours      = models.DecimalField(max_digits=5, decimal_places=2, default=40)
    leave_days        = models.PositiveSmallIntegerField(default=30)
    observes_holidays = models.BooleanField(default=True)
    annual_salary     = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    annual_on_costs   = models.DecimalField(max_digits=12, decimal_places=2, default=0)


class Absence(models.Model):
    KIND_CHOICES = [
        ("vacation", "Vacation"),
        ("sick", "Sick"),
    ]

    id         = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee   = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name="absences"
    )
    kind       = models.CharField(max_length=10, choices=KIND_CHOICES)
    start_date = models.DateField()
    end_date   = models.DateField()
    note       = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["start_date", "end_date"]
        indexes = [
            models.Index(fields=["employee", "start_date"]),
        ]

    def clean(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError({"end_date": "Absence ends before it starts."})


class Holiday(models.Model):
    id   = models.BigAutoField(primary_key=True)
    date = models.DateField(unique=True)
    name = models.CharField(max_length=100)

    class Meta:
        ordering = ["date"]


class Assignment(models.Model):
    id         = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee   = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name="assignments"
    )
    project    = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="assignments"
    )
    percent    = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(100)]
    )
    start_date = models.DateField()
    end_date   = models.DateField()

    class Meta:
        indexes = [
            models.Index(fields=["employee", "start_date"]),
            models.Index(fields=["project"]),
        ]

    def clean(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError({"end_date": "Assignment ends before it starts."})


class WorkPackageShare(models.Model):
    id           = models.BigAutoField(primary_key=True)
    assignment   = models.ForeignKey(
        Assignment,
        on_delete=models.CASCADE,
        related_name="shares"
    )
    work_package = models.ForeignKey(
        WorkPackage,
        on_delete=models.CASCADE,
        related_name="shares"
    )
    percent      = models.DecimalField(max_digits=5, decimal_places=2)

    class Meta:
        unique_together = ("assignment", "work_package")

    def clean(self):
        if self.work_package.project_id != self.assignment.project_id:
            raise ValidationError({"work_package": "Work package belongs to another project."})
