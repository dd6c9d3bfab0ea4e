from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from ..exceptions import ConflictError
from ..managers import TenantManager
from .academic import Student, Term
from .enrollment import Enrollment
from .school import School

ZERO = Decimal("0.00")


class InvoiceStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PARTIAL = "PARTIAL", "Partially paid"
    PAID = "PAID", "Paid"
    OVERDUE = "OVERDUE", "Overdue"
    CANCELLED = "CANCELLED", "Cancelled"  # only via administrative override


def derive_invoice_status(balance, paid_amount, due_date, today=None):
    """Status implied by the money columns and the due date."""
    if balance <= ZERO:
        return InvoiceStatus.PAID
    status = InvoiceStatus.PARTIAL if paid_amount > ZERO else InvoiceStatus.PENDING
    today = today or timezone.localdate()
    if due_date and today > due_date:
        status = InvoiceStatus.OVERDUE
    return status


class Invoice(models.Model):  # Fees owed by one enrollment for one term

    # Invoice belongs to one school (multi-tenant)
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="invoices")
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name="invoices")
    enrollment = models.ForeignKey(
        Enrollment, on_delete=models.PROTECT, related_name="invoices"
    )
    term = models.ForeignKey(Term, on_delete=models.PROTECT, related_name="invoices")

    amount = models.DecimalField(max_digits=18, decimal_places=2)
    # Sum of applied payments, never decreases
    paid_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    # Always amount - paid_amount (checked by the database as well)
    balance = models.DecimalField(max_digits=18, decimal_places=2)

    # Stored for query speed, recomputed on every payment
    status = models.CharField(
        max_length=10, choices=InvoiceStatus.choices, default=InvoiceStatus.PENDING
    )
    due_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["school", "status"], name="school_core_school__41c8e5_idx"),
            models.Index(fields=["school", "term"], name="school_core_school__c07b19_idx"),
            models.Index(fields=["school", "student"], name="school_core_school__7ea2d4_idx"),
        ]

        constraints = [
            # one invoice per enrollment per term
            models.UniqueConstraint(
                fields=["enrollment", "term"], name="uq_invoice_enrollment_term"
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="ck_invoice_amount_positive"
            ),
            models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0), name="ck_invoice_paid_non_negative"
            ),
            models.CheckConstraint(
                condition=models.Q(balance__gte=0), name="ck_invoice_balance_non_negative"
            ),
            models.CheckConstraint(
                condition=models.Q(balance=models.F("amount") - models.F("paid_amount")),
                name="ck_invoice_balance_matches",
            ),
        ]
        ordering = ("-created_at",)

    def __str__(self):
        return f"Inv {self.pk} ({self.status})"

    def register_payment(self, amount, today=None):
        """Move paid/balance/status forward by `amount`; caller holds the row lock."""
        self.paid_amount = self.paid_amount + amount
        self.balance = self.amount - self.paid_amount
        self.status = derive_invoice_status(
            self.balance, self.paid_amount, self.due_date, today=today
        )
        self.save(update_fields=["paid_amount", "balance", "status", "updated_at"])


class Payment(models.Model):  # Money received against one invoice
    school = models.ForeignKey(School, on_delete=models.PROTECT, related_name="payments")
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    method = models.CharField(max_length=50, null=True, blank=True)  # cash, bank, mobile...
    reference = models.CharField(max_length=100, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    payment_date = models.DateTimeField(default=timezone.now)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="ck_payment_amount_positive"
            ),
        ]
        ordering = ("-payment_date",)

    def __str__(self):
        return f"Payment {self.pk} on Inv {self.invoice_id}"

    # Payments are write-once: no update or delete path
    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ConflictError("Payments are immutable once recorded.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ConflictError("Payments cannot be deleted.")
