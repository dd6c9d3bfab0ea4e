from django.conf import settings  # To access global project settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from ..managers import TenantManager
from .school import School


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # before/after trail of every mutation
    # Nullable because platform actions may not belong to a school
    school = models.ForeignKey(
        School,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_logs",
    )
    # Who performed the action (null for automated jobs)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    action = models.CharField(max_length=50)  # e.g. CREATE, UPDATE, DELETE, PAYMENT
    entity_kind = models.CharField(max_length=100)  # e.g. "Invoice", "Enrollment"
    entity_id = models.CharField(max_length=100)
    before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    metadata = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["school", "user"], name="school_core_school__b85e07_idx"),
            models.Index(fields=["school", "created_at"], name="school_core_school__6ad4c2_idx"),
            models.Index(fields=["entity_kind", "entity_id"], name="school_core_entity__1c9f4e_idx"),
        ]
        ordering = ("-created_at",)

    def __str__(self):
        return (
            f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user_id} "
            f"{self.action} {self.entity_kind}({self.entity_id})"
        )
