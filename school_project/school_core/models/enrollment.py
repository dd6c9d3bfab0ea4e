from django.db import models
from django.utils import timezone

from ..exceptions import ConflictError
from ..managers import TenantManager
from .academic import AcademicYear, SchoolClass, Student
from .school import School


class EnrollmentStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    COMPLETE = "COMPLETE", "Complete"
    DROPPED = "DROPPED", "Dropped"


class Enrollment(models.Model):  # A student's seat in a class for one academic year

    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="enrollments")
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name="enrollments")
    academic_year = models.ForeignKey(
        AcademicYear, on_delete=models.PROTECT, related_name="enrollments"
    )
    school_class = models.ForeignKey(
        SchoolClass, on_delete=models.PROTECT, related_name="enrollments"
    )

    status = models.CharField(
        max_length=10, choices=EnrollmentStatus.choices, default=EnrollmentStatus.ACTIVE
    )
    """ Workflow:
        ACTIVE = currently enrolled.
        COMPLETE = finished the year (or promoted out of it).
        DROPPED = withdrew during the year.
        Terminal states only come back through reactivation. """

    enrollment_date = models.DateTimeField(default=timezone.now)
    completion_date = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        constraints = [
            # at most one enrollment per student per academic year
            models.UniqueConstraint(
                fields=["student", "academic_year"], name="uq_enrollment_student_year"
            ),
        ]
        indexes = [
            models.Index(fields=["school", "status"], name="school_core_school__e2b7f1_idx"),
            models.Index(fields=["school", "school_class"], name="school_core_school__9d3a60_idx"),
        ]

    def __str__(self):
        return f"{self.student_id} @ {self.school_class_id} ({self.status})"

    def transition_to(self, new_status):
        # Current state vs. allowed next states
        allowed = {
            EnrollmentStatus.ACTIVE: [EnrollmentStatus.COMPLETE, EnrollmentStatus.DROPPED],
            EnrollmentStatus.COMPLETE: [],
            EnrollmentStatus.DROPPED: [],
        }
        if new_status not in allowed.get(self.status, []):
            raise ConflictError(
                f"Cannot move enrollment from {self.status} to {new_status}"
            )

        self.status = new_status
        self.completion_date = timezone.now()
        self.save(update_fields=["status", "completion_date", "updated_at"])
