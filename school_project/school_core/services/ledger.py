import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, DecimalField, Sum, Value
from django.db.models.functions import Coalesce

from ..exceptions import (ConflictError, NotFoundError,
                          ServiceValidationError)
from ..models import (Enrollment, EnrollmentStatus, Invoice, InvoiceStatus,
                      Payment, Term)
from .audit_helper import record_audit, snapshot
from .authorization import FINANCIAL_STAFF, SCHOOL_ADMINS, authorize
from .batch import Atomicity, process_batch
from .validation import (get_visible, get_visible_student, to_date,
                         to_datetime, to_money)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
MAX_PAGE_SIZE = 100

INVOICE_AUDIT_FIELDS = ["amount", "paid_amount", "balance", "status", "due_date"]


def _money_sum(field):
    return Coalesce(
        Sum(field), Value(ZERO), output_field=DecimalField(max_digits=18, decimal_places=2)
    )


# ----------------------------
# Invoice generation
# ----------------------------
def generate_invoices(enrollment_ids, term_id, amount, context, due_date=None):
    """
    Create one PENDING invoice per enrollment for `term_id`.
    Each enrollment is checked on its own; failures are returned as
    {"enrollment_id", "error", "code"} entries next to the created invoices.
    """
    authorize(context, FINANCIAL_STAFF)
    amount = to_money(amount)
    if due_date is not None:
        due_date = to_date(due_date, "due_date")
    term = get_visible(Term, term_id, context)

    def create_one(enrollment_id):
        # enrollment must live in the same school as the term
        try:
            enrollment = Enrollment.objects.for_school(term.school_id).get(pk=enrollment_id)
        except (Enrollment.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Enrollment", enrollment_id)
        if enrollment.status != EnrollmentStatus.ACTIVE:
            raise ServiceValidationError("Enrollment is not active")

        # checked before insert even in bulk; the unique constraint backs it up
        if Invoice.objects.filter(enrollment=enrollment, term=term).exists():
            raise ConflictError("Invoice already exists for this term")

        invoice = Invoice.objects.create(
            school_id=term.school_id,
            student_id=enrollment.student_id,
            enrollment=enrollment,
            term=term,
            amount=amount,
            paid_amount=ZERO,
            balance=amount,
            status=InvoiceStatus.PENDING,
            due_date=due_date,
        )
        record_audit(
            context=context,
            action="CREATE",
            entity_kind="Invoice",
            entity_id=invoice.pk,
            school_id=invoice.school_id,
            after=snapshot(invoice, INVOICE_AUDIT_FIELDS),
        )
        return invoice

    result = process_batch(
        enrollment_ids,
        create_one,
        key=lambda enrollment_id: enrollment_id,
        key_name="enrollment_id",
        atomicity=Atomicity.PER_ITEM,
    )
    logger.info(
        "Generated %d invoice(s) for term %s (%d error(s))",
        result.success_count, term.pk, result.error_count,
    )
    return result


# ----------------------------
# Payment application
# ----------------------------
def apply_payment(
    invoice_id,
    amount,
    context,
    method=None,
    reference=None,
    notes=None,
    payment_date=None,
):
    """
    Record a payment and move the invoice's paid/balance/status forward.
    The invoice row stays locked from the balance check until commit, so two
    concurrent payments can never jointly overdraw it.
    """
    authorize(context, FINANCIAL_STAFF)
    amount = to_money(amount)

    with transaction.atomic():
        invoice = get_visible(
            Invoice,
            invoice_id,
            context,
            queryset=Invoice.objects.visible_to(context).select_for_update(),
        )

        if invoice.status == InvoiceStatus.CANCELLED:
            raise ServiceValidationError("Cannot apply payment to a cancelled invoice")
        # no overpayment, there is no credit concept
        if amount > invoice.balance:
            raise ServiceValidationError(
                f"Payment amount ({amount}) exceeds invoice balance ({invoice.balance})"
            )

        before = snapshot(invoice, INVOICE_AUDIT_FIELDS)
        payment_kwargs = {}
        if payment_date is not None:
            payment_kwargs["payment_date"] = to_datetime(payment_date, "payment_date")
        payment = Payment.objects.create(
            school_id=invoice.school_id,
            invoice=invoice,
            amount=amount,
            method=method,
            reference=reference,
            notes=notes,
            recorded_by_id=context.user_id,
            **payment_kwargs,
        )
        invoice.register_payment(amount)

        record_audit(
            context=context,
            action="PAYMENT",
            entity_kind="Invoice",
            entity_id=invoice.pk,
            school_id=invoice.school_id,
            before=before,
            after=snapshot(invoice, INVOICE_AUDIT_FIELDS),
            metadata={"payment_id": payment.pk, "amount": amount, "method": method},
        )

    logger.info(
        "Applied payment %s of %s to invoice %s (status %s)",
        payment.pk, amount, invoice.pk, invoice.status,
    )
    return payment, invoice


# ----------------------------
# Administrative overrides
# ----------------------------
def update_invoice_status(invoice_id, status, context):
    authorize(context, FINANCIAL_STAFF)
    if status not in InvoiceStatus.values:
        raise ServiceValidationError(f"Invalid invoice status: {status}")

    with transaction.atomic():
        invoice = get_visible(
            Invoice,
            invoice_id,
            context,
            queryset=Invoice.objects.visible_to(context).select_for_update(),
        )
        # a fully paid invoice is terminal
        if invoice.status == InvoiceStatus.PAID and status != InvoiceStatus.PAID:
            raise ConflictError("Cannot change the status of a paid invoice")
        if status == InvoiceStatus.PAID and invoice.balance > ZERO:
            raise ServiceValidationError("Cannot mark an invoice with an open balance as paid")

        before = snapshot(invoice, INVOICE_AUDIT_FIELDS)
        invoice.status = status
        invoice.save(update_fields=["status", "updated_at"])
        record_audit(
            context=context,
            action="STATUS_OVERRIDE",
            entity_kind="Invoice",
            entity_id=invoice.pk,
            school_id=invoice.school_id,
            before=before,
            after=snapshot(invoice, INVOICE_AUDIT_FIELDS),
        )
    return invoice


def delete_invoice(invoice_id, context):
    authorize(context, SCHOOL_ADMINS)

    with transaction.atomic():
        invoice = get_visible(
            Invoice,
            invoice_id,
            context,
            queryset=Invoice.objects.visible_to(context).select_for_update(),
        )
        if invoice.payments.exists():
            raise ConflictError(
                "Cannot delete invoice with associated payments. Cancel the invoice instead."
            )
        before = snapshot(invoice, INVOICE_AUDIT_FIELDS)
        school_id = invoice.school_id
        invoice.delete()
        record_audit(
            context=context,
            action="DELETE",
            entity_kind="Invoice",
            entity_id=invoice_id,
            school_id=school_id,
            before=before,
        )
    logger.info("Deleted invoice %s", invoice_id)


# ----------------------------
# Reads
# ----------------------------
def get_invoice(invoice_id, context):
    authorize(context, FINANCIAL_STAFF)
    qs = Invoice.objects.visible_to(context).select_related("student", "term", "enrollment")
    return get_visible(Invoice, invoice_id, context, queryset=qs)


def list_invoices(context, student_id=None, term_id=None, status=None, page=1, limit=20):
    """Returns (invoices on the page, total matching count)."""
    authorize(context, FINANCIAL_STAFF)
    if page < 1:
        raise ServiceValidationError("page must be at least 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ServiceValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if status is not None and status not in InvoiceStatus.values:
        raise ServiceValidationError(f"Invalid invoice status: {status}")

    qs = Invoice.objects.visible_to(context).select_related("student", "term")
    if student_id is not None:
        qs = qs.filter(student_id=student_id)
    if term_id is not None:
        qs = qs.filter(term_id=term_id)
    if status is not None:
        qs = qs.filter(status=status)

    total = qs.count()
    offset = (page - 1) * limit
    return list(qs.order_by("-created_at", "-id")[offset:offset + limit]), total


def get_financial_summary(context, term_id=None):
    """Totals and per-status counts over the caller's invoices."""
    authorize(context, FINANCIAL_STAFF)
    qs = Invoice.objects.visible_to(context)
    if term_id is not None:
        term = get_visible(Term, term_id, context)
        qs = qs.filter(term=term)

    totals = qs.aggregate(
        total_amount=_money_sum("amount"),
        total_paid=_money_sum("paid_amount"),
        total_balance=_money_sum("balance"),
        invoice_count=Count("id"),
    )
    status_counts = {status: 0 for status in InvoiceStatus.values}
    for row in qs.order_by().values("status").annotate(n=Count("id")):
        status_counts[row["status"]] = row["n"]

    totals["status_counts"] = status_counts
    return totals


def get_student_financial_summary(student_id, context):
    authorize(context, FINANCIAL_STAFF)
    student = get_visible_student(student_id, context)

    invoices = Invoice.objects.for_school(student.school_id).filter(student=student)
    summary = invoices.aggregate(
        total_amount=_money_sum("amount"),
        total_paid=_money_sum("paid_amount"),
        total_balance=_money_sum("balance"),
        invoice_count=Count("id"),
    )
    summary["student_id"] = student.pk
    summary["payment_count"] = Payment.objects.for_school(student.school_id).filter(
        invoice__student=student
    ).count()
    summary["overdue_count"] = invoices.filter(status=InvoiceStatus.OVERDUE).count()
    return summary
