import functools
import json
import logging

from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import services
from .exceptions import ServiceError, ServiceValidationError

logger = logging.getLogger(__name__)


# ----------------------------
# Envelope helpers
# ----------------------------
def ok(data, status=200):
    return JsonResponse({"success": True, "data": data}, status=status)


def fail(code, message, status):
    return JsonResponse(
        {"success": False, "error": {"code": code, "message": message}}, status=status
    )


def service_view(view):
    """Resolve the caller context and turn ServiceError into the error envelope."""

    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        context = getattr(request, "service_context", None)
        if context is None:
            return fail("UNAUTHORIZED", "Authentication required", 401)
        try:
            return view(request, context, *args, **kwargs)
        except ServiceError as exc:
            logger.info("%s %s -> %s: %s", request.method, request.path, exc.code, exc.message)
            return fail(exc.code, exc.message, exc.status_code)

    return wrapper


def _body(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ServiceValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ServiceValidationError("Request body must be a JSON object")
    return data


def _require(data, *names):
    missing = [name for name in names if data.get(name) is None]
    if missing:
        raise ServiceValidationError(f"Missing field(s): {', '.join(missing)}")
    return [data[name] for name in names]


def _int_param(request, name, default=None):
    raw = request.GET.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ServiceValidationError(f"{name} must be an integer")


# ----------------------------
# Serializers
# ----------------------------
def invoice_data(inv):
    return {
        "id": inv.pk,
        "school_id": inv.school_id,
        "student_id": inv.student_id,
        "enrollment_id": inv.enrollment_id,
        "term_id": inv.term_id,
        "amount": inv.amount,
        "paid_amount": inv.paid_amount,
        "balance": inv.balance,
        "status": inv.status,
        "due_date": inv.due_date,
        "created_at": inv.created_at,
    }


def payment_data(payment):
    return {
        "id": payment.pk,
        "invoice_id": payment.invoice_id,
        "amount": payment.amount,
        "method": payment.method,
        "reference": payment.reference,
        "notes": payment.notes,
        "payment_date": payment.payment_date,
    }


def enrollment_data(enrollment):
    return {
        "id": enrollment.pk,
        "school_id": enrollment.school_id,
        "student_id": enrollment.student_id,
        "academic_year_id": enrollment.academic_year_id,
        "class_id": enrollment.school_class_id,
        "status": enrollment.status,
        "enrollment_date": enrollment.enrollment_date,
        "completion_date": enrollment.completion_date,
    }


def batch_data(result, serialize):
    return {
        "succeeded": [serialize(item) for item in result.succeeded],
        "errors": result.errors,
        "success_count": result.success_count,
        "error_count": result.error_count,
    }


def _record_data(record):
    return {"id": record.pk, "enrollment_id": record.enrollment_id, "student_id": record.student_id}


# ----------------------------
# Ledger
# ----------------------------
@require_POST
@service_view
def generate_invoices_view(request, context):
    data = _body(request)
    enrollment_ids, term_id, amount = _require(data, "enrollment_ids", "term_id", "amount")
    result = services.generate_invoices(
        enrollment_ids, term_id, amount, context, due_date=data.get("due_date")
    )
    return ok(batch_data(result, invoice_data), status=201)


@require_GET
@service_view
def invoice_list_view(request, context):
    invoices, total = services.list_invoices(
        context,
        student_id=_int_param(request, "student_id"),
        term_id=_int_param(request, "term_id"),
        status=request.GET.get("status") or None,
        page=_int_param(request, "page", 1),
        limit=_int_param(request, "limit", 20),
    )
    return ok({"invoices": [invoice_data(inv) for inv in invoices], "total": total})


@require_http_methods(["GET", "DELETE"])
@service_view
def invoice_detail_view(request, context, invoice_id):
    if request.method == "DELETE":
        services.delete_invoice(invoice_id, context)
        return ok({"id": invoice_id})
    return ok(invoice_data(services.get_invoice(invoice_id, context)))


@require_POST
@service_view
def apply_payment_view(request, context, invoice_id):
    data = _body(request)
    (amount,) = _require(data, "amount")
    payment, invoice = services.apply_payment(
        invoice_id,
        amount,
        context,
        method=data.get("method"),
        reference=data.get("reference"),
        notes=data.get("notes"),
        payment_date=data.get("payment_date"),
    )
    return ok({"payment": payment_data(payment), "invoice": invoice_data(invoice)}, status=201)


@require_POST
@service_view
def invoice_status_view(request, context, invoice_id):
    (status,) = _require(_body(request), "status")
    return ok(invoice_data(services.update_invoice_status(invoice_id, status, context)))


@require_GET
@service_view
def financial_summary_view(request, context):
    return ok(services.get_financial_summary(context, term_id=_int_param(request, "term_id")))


@require_GET
@service_view
def student_financial_summary_view(request, context, student_id):
    return ok(services.get_student_financial_summary(student_id, context))


# ----------------------------
# Enrollments
# ----------------------------
@require_http_methods(["GET", "POST"])
@service_view
def enrollment_list_view(request, context):
    if request.method == "POST":
        data = _body(request)
        student_id, year_id, class_id = _require(data, "student_id", "academic_year_id", "class_id")
        enrollment = services.create_enrollment(student_id, year_id, class_id, context)
        return ok(enrollment_data(enrollment), status=201)

    enrollments, total = services.list_enrollments(
        context,
        academic_year_id=_int_param(request, "academic_year_id"),
        class_id=_int_param(request, "class_id"),
        student_id=_int_param(request, "student_id"),
        status=request.GET.get("status") or None,
        page=_int_param(request, "page", 1),
        limit=_int_param(request, "limit", 20),
    )
    return ok({"enrollments": [enrollment_data(e) for e in enrollments], "total": total})


@require_POST
@service_view
def bulk_enrollment_view(request, context):
    (entries,) = _require(_body(request), "enrollments")
    result = services.bulk_create_enrollments(entries, context)
    return ok(batch_data(result, enrollment_data), status=201)


@require_http_methods(["GET", "DELETE"])
@service_view
def enrollment_detail_view(request, context, enrollment_id):
    if request.method == "DELETE":
        services.delete_enrollment(enrollment_id, context)
        return ok({"id": enrollment_id})
    return ok(enrollment_data(services.get_enrollment(enrollment_id, context)))


@require_POST
@service_view
def transfer_view(request, context, enrollment_id):
    (class_id,) = _require(_body(request), "class_id")
    return ok(enrollment_data(services.transfer_student(enrollment_id, class_id, context)))


@require_POST
@service_view
def drop_view(request, context, enrollment_id):
    return ok(enrollment_data(services.drop_enrollment(enrollment_id, context)))


@require_POST
@service_view
def complete_view(request, context, enrollment_id):
    return ok(enrollment_data(services.complete_enrollment(enrollment_id, context)))


@require_POST
@service_view
def reactivate_view(request, context, enrollment_id):
    data = _body(request)
    enrollment = services.reactivate_enrollment(
        enrollment_id, context, class_id=data.get("class_id")
    )
    return ok(enrollment_data(enrollment))


@require_POST
@service_view
def promote_view(request, context):
    data = _body(request)
    student_ids, year_id, class_id = _require(
        data, "student_ids", "target_academic_year_id", "target_class_id"
    )
    enrollments = services.promote_students(
        student_ids,
        year_id,
        class_id,
        context,
        mark_previous_as_completed=data.get("mark_previous_as_completed", True),
    )
    return ok(
        {"promoted": len(enrollments), "enrollments": [enrollment_data(e) for e in enrollments]},
        status=201,
    )


# ----------------------------
# Academics / periods
# ----------------------------
def result_data(result):
    return {**_record_data(result), "exam_id": result.exam_id, "marks": result.marks, "grade": result.grade}


@require_http_methods(["GET", "POST"])
@service_view
def bulk_results_view(request, context, exam_id):
    if request.method == "GET":
        results = services.get_results_by_exam(exam_id, context)
        return ok({"results": [{**result_data(r), "rank": r.rank} for r in results]})
    (entries,) = _require(_body(request), "results")
    result = services.bulk_enter_results(exam_id, entries, context)
    return ok(batch_data(result, result_data))


@require_POST
@service_view
def bulk_attendance_view(request, context):
    data = _body(request)
    class_id, term_id, date, entries = _require(data, "class_id", "term_id", "date", "attendances")
    result = services.bulk_update_attendance(class_id, term_id, date, entries, context)
    return ok(batch_data(result, lambda a: {**_record_data(a), "is_present": a.is_present}))


@require_POST
@service_view
def set_current_year_view(request, context, academic_year_id):
    year = services.set_current_academic_year(academic_year_id, context)
    return ok({"id": year.pk, "name": year.name, "is_current": year.is_current})


@require_POST
@service_view
def term_lock_view(request, context, term_id, locked):
    term = services.lock_term(term_id, context) if locked else services.unlock_term(term_id, context)
    return ok({"id": term.pk, "is_locked": term.is_locked})


def year_data(year):
    return {
        "id": year.pk,
        "name": year.name,
        "start_date": year.start_date,
        "end_date": year.end_date,
        "is_current": year.is_current,
    }


def term_data(term):
    return {
        "id": term.pk,
        "academic_year_id": term.academic_year_id,
        "name": term.name,
        "start_date": term.start_date,
        "end_date": term.end_date,
        "is_locked": term.is_locked,
    }


@require_http_methods(["PATCH", "DELETE"])
@service_view
def academic_year_detail_view(request, context, academic_year_id):
    if request.method == "DELETE":
        services.delete_academic_year(academic_year_id, context)
        return ok({"id": academic_year_id})
    data = _body(request)
    year = services.update_academic_year(
        academic_year_id,
        context,
        name=data.get("name"),
        start_date=data.get("start_date"),
        end_date=data.get("end_date"),
        is_current=data.get("is_current"),
    )
    return ok(year_data(year))


@require_http_methods(["PATCH", "DELETE"])
@service_view
def term_detail_view(request, context, term_id):
    if request.method == "DELETE":
        services.delete_term(term_id, context)
        return ok({"id": term_id})
    data = _body(request)
    term = services.update_term(
        term_id,
        context,
        name=data.get("name"),
        start_date=data.get("start_date"),
        end_date=data.get("end_date"),
    )
    return ok(term_data(term))


@require_http_methods(["DELETE"])
@service_view
def result_detail_view(request, context, result_id):
    services.delete_result(result_id, context)
    return ok({"id": result_id})


@require_http_methods(["DELETE"])
@service_view
def attendance_detail_view(request, context, attendance_id):
    services.delete_attendance(attendance_id, context)
    return ok({"id": attendance_id})


@require_GET
@service_view
def student_results_view(request, context, student_id):
    results = services.get_results_by_student(student_id, context)
    return ok({"results": [result_data(r) for r in results]})


@require_GET
@service_view
def exam_statistics_view(request, context, exam_id):
    return ok(services.calculate_exam_statistics(exam_id, context))


@require_GET
@service_view
def class_rankings_view(request, context, class_id):
    rankings = services.generate_class_rankings(
        class_id, context, exam_id=_int_param(request, "exam_id")
    )
    return ok({"rankings": rankings})


@require_GET
@service_view
def class_attendance_summary_view(request, context, class_id):
    term_id = _int_param(request, "term_id")
    if term_id is None:
        raise ServiceValidationError("term_id is required")
    return ok(services.get_class_attendance_summary(class_id, term_id, context))
