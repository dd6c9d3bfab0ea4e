from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .school import School

ACADEMIC_YEAR_STATUS_CHOICES = [
    ("ACTIVE", "Active"),
    ("COMPLETED", "Completed"),
    ("ARCHIVED", "Archived"),
]


# ---------- Student ----------
class Student(models.Model):
    # The core only references students by id; their CRUD lives elsewhere
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="students")
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    admission_number = models.CharField(max_length=64, null=True, blank=True)
    # soft delete: deleted students are invisible to every service
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["school", "last_name"], name="school_core_school__5b1e8a_idx")]

    def __str__(self):
        return f"{self.first_name} {self.last_name}"


# ---------- AcademicYear (enrollment period) ----------
class AcademicYear(models.Model):
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="academic_years")
    name = models.CharField(max_length=50)  # Example: "2025/2026"
    start_date = models.DateField()
    end_date = models.DateField()
    # Denormalized mirror of School.current_academic_year
    is_current = models.BooleanField(default=False)
    status = models.CharField(
        max_length=10, choices=ACADEMIC_YEAR_STATUS_CHOICES, default="ACTIVE"
    )

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["school", "name"], name="uq_school_academic_year_name"),
            # never two current years in one school
            models.UniqueConstraint(
                fields=["school"],
                condition=models.Q(is_current=True),
                name="uq_school_current_academic_year",
            ),
        ]
        ordering = ("school", "start_date")

    def __str__(self):
        return self.name

    def clean(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError("Academic year end date must be after start date")


# ---------- Term (billing / attendance period) ----------
class Term(models.Model):
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="terms")
    academic_year = models.ForeignKey(
        AcademicYear, on_delete=models.PROTECT, related_name="terms"
    )
    name = models.CharField(max_length=50)  # Example: "Term 1"
    start_date = models.DateField()
    end_date = models.DateField()
    # When is_locked=True no attendance can be recorded for the term
    is_locked = models.BooleanField(default=False)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["academic_year", "name"], name="uq_academic_year_term_name"
            ),
        ]
        ordering = ("school", "start_date")

    def __str__(self):
        return f"{self.academic_year.name} {self.name}"


# ---------- Class ----------
class SchoolClass(models.Model):
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="classes")
    # a class only exists inside one academic year
    academic_year = models.ForeignKey(
        AcademicYear, on_delete=models.PROTECT, related_name="classes"
    )
    name = models.CharField(max_length=100)
    grade = models.CharField(max_length=20)
    stream = models.CharField(max_length=20, blank=True, default="")

    objects = TenantManager()

    class Meta:
        verbose_name_plural = "classes"
        indexes = [models.Index(fields=["school", "academic_year"], name="school_core_school__a4c9d3_idx")]

    def __str__(self):
        return self.name


# ---------- Exam ----------
class Exam(models.Model):
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="exams")
    term = models.ForeignKey(Term, on_delete=models.PROTECT, related_name="exams")
    school_class = models.ForeignKey(SchoolClass, on_delete=models.PROTECT, related_name="exams")
    name = models.CharField(max_length=100)
    max_marks = models.PositiveIntegerField()

    objects = TenantManager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(max_marks__gt=0), name="ck_exam_max_marks_positive"
            ),
        ]

    def __str__(self):
        return self.name
