import datetime
from decimal import Decimal, InvalidOperation

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from ..exceptions import NotFoundError, ServiceValidationError
from ..models import Student

CENT = Decimal("0.01")


# ------------------------------------
# Tenant-scoped lookups
# ------------------------------------
def get_visible(model, pk, context, entity=None, queryset=None):
    """Fetch one row of the caller's school; absent and foreign rows look the same."""
    qs = queryset if queryset is not None else model.objects.visible_to(context)
    try:
        return qs.get(pk=pk)
    except (model.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(entity or model.__name__, pk)


def get_visible_student(student_id, context):
    # soft-deleted students are invisible to every service
    qs = Student.objects.visible_to(context).filter(deleted_at__isnull=True)
    return get_visible(Student, student_id, context, queryset=qs)


# ------------------------------------
# Input validation
# ------------------------------------
def to_money(value, field="amount") -> Decimal:
    """Parse a money input into a 2-place Decimal; must be strictly positive."""
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ServiceValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ServiceValidationError(f"{field} must be a number")
    if amount <= 0:
        raise ServiceValidationError(f"{field} must be greater than 0")
    if amount != amount.quantize(CENT):
        raise ServiceValidationError(f"{field} must have at most 2 decimal places")
    return amount.quantize(CENT)


def to_date(value, field="date") -> datetime.date:
    """Accept a date, a datetime (truncated to its day) or an ISO string."""
    if isinstance(value, datetime.datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise ServiceValidationError(f"{field} must be a valid date")


def to_datetime(value, field="date") -> datetime.datetime:
    """Aware datetime from a datetime, a date (start of day) or an ISO string."""
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value)
        except ValueError:
            parsed = None
        value = parsed or to_date(value, field)
    if isinstance(value, datetime.datetime):
        return value if timezone.is_aware(value) else timezone.make_aware(value)
    if isinstance(value, datetime.date):
        return timezone.make_aware(datetime.datetime.combine(value, datetime.time.min))
    raise ServiceValidationError(f"{field} must be a valid date")


def validate_date_range(start_date, end_date, label="End date"):
    if end_date <= start_date:
        raise ServiceValidationError(f"{label} must be after start date")
