from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import SchoolUserManager


class Role(models.TextChoices):
    # Listed from highest to lowest privilege
    SUPER_ADMIN = "SUPER_ADMIN", "Super admin"  # platform level, no school
    ADMIN = "ADMIN", "Admin"
    TEACHER = "TEACHER", "Teacher"
    ACCOUNTANT = "ACCOUNTANT", "Accountant"
    PARENT = "PARENT", "Parent"
    STUDENT = "STUDENT", "Student"


SCHOOL_STATUS_CHOICES = [
    ("ACTIVE", "Active"),
    ("SUSPENDED", "Suspended"),
]


# ---------- Tenant / School ----------
class School(models.Model):

    """Tenant: every mutable row below points at one School"""
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two schools can have the same slug
    )

    status = models.CharField(
        max_length=10, choices=SCHOOL_STATUS_CHOICES, default="ACTIVE"
    )

    # Single pointer to the current academic year.
    # Updated in the same transaction that flips AcademicYear.is_current
    current_academic_year = models.ForeignKey(
        "AcademicYear",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


# ---------- Custom User ----------
class User(AbstractUser):
    """
    Before you run your very first migrate,
    add: 'AUTH_USER_MODEL = "school_core.User"' to settings.py
    """
    # The tenant this identity belongs to (None only for SUPER_ADMIN)
    school = models.ForeignKey(
        School,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="users",
    )

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.STUDENT,  # safe, lowest privilege
    )

    # Enforce tenant scoping
    objects = SchoolUserManager()

    class Meta:
        indexes = [models.Index(fields=["school", "role"], name="school_core_school__0f7d2c_idx")]

    def __str__(self):
        return self.get_full_name() or self.username

    def clean(self):
        super().clean()
        # Platform identities never belong to a school, school identities always do
        if self.role == Role.SUPER_ADMIN and self.school_id is not None:
            raise ValidationError("SUPER_ADMIN users must not be associated with a school.")
        if self.role != Role.SUPER_ADMIN and self.school_id is None:
            raise ValidationError(f"{self.role} users must belong to a school.")
