from django.db import models

from ..managers import TenantManager
from .academic import Exam, Student, Term
from .enrollment import Enrollment
from .school import School


# ---------- Exam result ----------
class Result(models.Model):
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="results")
    # results keep their enrollment alive
    enrollment = models.ForeignKey(Enrollment, on_delete=models.PROTECT, related_name="results")
    exam = models.ForeignKey(Exam, on_delete=models.PROTECT, related_name="results")
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name="results")
    marks = models.DecimalField(max_digits=7, decimal_places=2)
    grade = models.CharField(max_length=5, blank=True, default="")
    remarks = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["enrollment", "exam"], name="uq_result_enrollment_exam"),
        ]

    def __str__(self):
        return f"{self.student_id} {self.exam_id}: {self.marks}"


# ---------- Daily attendance ----------
class Attendance(models.Model):
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="attendances")
    enrollment = models.ForeignKey(
        Enrollment, on_delete=models.PROTECT, related_name="attendances"
    )
    term = models.ForeignKey(Term, on_delete=models.PROTECT, related_name="attendances")
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name="attendances")
    date = models.DateField()
    is_present = models.BooleanField()
    remarks = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()

    class Meta:
        verbose_name_plural = "attendance"
        constraints = [
            # one mark per enrollment per day
            models.UniqueConstraint(fields=["enrollment", "date"], name="uq_attendance_enrollment_date"),
        ]
        indexes = [models.Index(fields=["school", "date"], name="school_core_school__3f61b2_idx")]

    def __str__(self):
        return f"{self.student_id} {self.date} {'P' if self.is_present else 'A'}"
