import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Prefetch

from ..exceptions import NotFoundError, ServiceValidationError
from ..models import (Attendance, Enrollment, EnrollmentStatus, Exam, Result,
                      SchoolClass, Term)
from .audit_helper import record_audit, snapshot
from .authorization import ACADEMIC_STAFF, ALL_STAFF, SCHOOL_ADMINS, authorize
from .batch import Atomicity, entry_key, process_batch, require_entry
from .validation import get_visible, get_visible_student, to_date

logger = logging.getLogger(__name__)

# share of max_marks needed to pass an exam
PASS_RATIO = Decimal("0.4")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# (minimum percentage, grade), checked top-down
GRADE_THRESHOLDS = [
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C"),
    (40, "D"),
]


def calculate_grade(marks, max_marks):
    percentage = Decimal(marks) * 100 / Decimal(max_marks)
    for minimum, grade in GRADE_THRESHOLDS:
        if percentage >= minimum:
            return grade
    return "F"


def _to_marks(marks, max_marks):
    try:
        value = Decimal(str(marks))
    except (InvalidOperation, TypeError, ValueError):
        raise ServiceValidationError("Marks must be a number")
    if not value.is_finite() or value < 0 or value > max_marks:
        raise ServiceValidationError(f"Marks must be between 0 and {max_marks}")
    return value


# ----------------------------
# Results
# ----------------------------
def _save_result(exam, enrollment_id, marks, context, grade=None, remarks=None):
    try:
        enrollment = Enrollment.objects.for_school(exam.school_id).get(pk=enrollment_id)
    except (Enrollment.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Enrollment", enrollment_id)

    value = _to_marks(marks, exam.max_marks)
    result, created = Result.objects.update_or_create(
        enrollment=enrollment,
        exam=exam,
        defaults={
            "school_id": exam.school_id,
            "student_id": enrollment.student_id,
            "marks": value,
            "grade": grade or calculate_grade(value, exam.max_marks),
            "remarks": remarks,
        },
    )
    record_audit(
        context=context,
        action="CREATE" if created else "UPDATE",
        entity_kind="Result",
        entity_id=result.pk,
        school_id=result.school_id,
        after={"marks": value, "grade": result.grade, "exam": exam.pk},
    )
    return result


def upsert_result(enrollment_id, exam_id, marks, context, grade=None, remarks=None):
    authorize(context, ACADEMIC_STAFF)
    with transaction.atomic():
        exam = get_visible(Exam, exam_id, context)
        return _save_result(exam, enrollment_id, marks, context, grade=grade, remarks=remarks)


def bulk_enter_results(exam_id, entries, context):
    """entries: [{"enrollment_id", "marks", "remarks"?}, ...]"""
    authorize(context, ACADEMIC_STAFF)
    exam = get_visible(Exam, exam_id, context)

    def enter_one(entry):
        require_entry(entry)
        return _save_result(
            exam, entry.get("enrollment_id"), entry.get("marks"), context,
            remarks=entry.get("remarks"),
        )

    result = process_batch(
        entries,
        enter_one,
        key=entry_key("enrollment_id"),
        key_name="enrollment_id",
        atomicity=Atomicity.PER_ITEM,
    )
    logger.info("Entered %d result(s) for exam %s", result.success_count, exam.pk)
    return result


# ----------------------------
# Attendance
# ----------------------------
def _open_term(term_id, context):
    term = get_visible(Term, term_id, context)
    if term.is_locked:
        raise ServiceValidationError("Cannot mark attendance for a locked term")
    return term


def _save_attendance(enrollment, term, day, is_present, context, remarks=None):
    if not isinstance(is_present, bool):
        raise ServiceValidationError("is_present must be true or false")
    attendance, created = Attendance.objects.update_or_create(
        enrollment=enrollment,
        date=day,
        defaults={
            "school_id": enrollment.school_id,
            "student_id": enrollment.student_id,
            "term": term,
            "is_present": is_present,
            "remarks": remarks,
        },
    )
    record_audit(
        context=context,
        action="CREATE" if created else "UPDATE",
        entity_kind="Attendance",
        entity_id=attendance.pk,
        school_id=attendance.school_id,
        after={"date": day, "is_present": is_present},
    )
    return attendance


def mark_attendance(enrollment_id, term_id, date, is_present, context, remarks=None):
    authorize(context, ACADEMIC_STAFF)
    day = to_date(date)
    with transaction.atomic():
        term = _open_term(term_id, context)
        try:
            enrollment = Enrollment.objects.for_school(term.school_id).get(pk=enrollment_id)
        except (Enrollment.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Enrollment", enrollment_id)
        return _save_attendance(enrollment, term, day, is_present, context, remarks=remarks)


def bulk_update_attendance(class_id, term_id, date, entries, context):
    """
    entries: [{"enrollment_id", "is_present", "remarks"?}, ...]
    Every enrollment must be ACTIVE in `class_id`.
    """
    authorize(context, ACADEMIC_STAFF)
    day = to_date(date)
    school_class = get_visible(SchoolClass, class_id, context, entity="Class")
    term = _open_term(term_id, context)
    if term.school_id != school_class.school_id:
        raise NotFoundError("Term", term_id)

    active_in_class = Enrollment.objects.for_school(school_class.school_id).filter(
        school_class=school_class, status=EnrollmentStatus.ACTIVE
    )

    def mark_one(entry):
        enrollment_id = require_entry(entry).get("enrollment_id")
        try:
            enrollment = active_in_class.get(pk=enrollment_id)
        except (Enrollment.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Enrollment", enrollment_id)
        return _save_attendance(
            enrollment, term, day, entry.get("is_present"), context,
            remarks=entry.get("remarks"),
        )

    result = process_batch(
        entries,
        mark_one,
        key=entry_key("enrollment_id"),
        key_name="enrollment_id",
        atomicity=Atomicity.PER_ITEM,
    )
    logger.info(
        "Recorded attendance for %d enrollment(s) in class %s on %s",
        result.success_count, school_class.pk, day,
    )
    return result


# ----------------------------
# Deletes
# ----------------------------
def delete_result(result_id, context):
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        result = get_visible(Result, result_id, context)
        before = snapshot(result, ["enrollment", "exam", "marks", "grade"])
        result.delete()
        record_audit(
            context=context,
            action="DELETE",
            entity_kind="Result",
            entity_id=result_id,
            school_id=result.school_id,
            before=before,
        )
    logger.info("Deleted result %s", result_id)


def delete_attendance(attendance_id, context):
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        attendance = get_visible(Attendance, attendance_id, context)
        before = snapshot(attendance, ["enrollment", "term", "date", "is_present"])
        attendance.delete()
        record_audit(
            context=context,
            action="DELETE",
            entity_kind="Attendance",
            entity_id=attendance_id,
            school_id=attendance.school_id,
            before=before,
        )
    logger.info("Deleted attendance %s", attendance_id)


# ----------------------------
# Reports
# ----------------------------
def _percent(part, whole):
    if not whole:
        return Decimal("0.00")
    return (Decimal(part) * HUNDRED / Decimal(whole)).quantize(CENT, rounding=ROUND_HALF_UP)


def get_results_by_exam(exam_id, context):
    """Results of one exam, best marks first, each with its 1-based `rank`."""
    authorize(context, ALL_STAFF)
    exam = get_visible(Exam, exam_id, context)
    results = list(
        Result.objects.for_school(exam.school_id)
        .filter(exam=exam)
        .select_related("student", "enrollment__school_class")
        .order_by("-marks", "pk")
    )
    for position, result in enumerate(results, start=1):
        result.rank = position
    return results


def get_results_by_student(student_id, context):
    authorize(context, ALL_STAFF)
    student = get_visible_student(student_id, context)
    return list(
        Result.objects.for_school(student.school_id)
        .filter(student=student)
        .select_related("exam")
        .order_by("-created_at")
    )


def calculate_exam_statistics(exam_id, context):
    authorize(context, ALL_STAFF)
    exam = get_visible(Exam, exam_id, context)
    marks = list(
        Result.objects.for_school(exam.school_id).filter(exam=exam).values_list("marks", flat=True)
    )
    if not marks:
        zero = Decimal("0.00")
        return {
            "total_students": 0,
            "average_marks": zero,
            "highest_marks": zero,
            "lowest_marks": zero,
            "pass_count": 0,
            "fail_count": 0,
            "pass_percentage": zero,
        }

    pass_mark = Decimal(exam.max_marks) * PASS_RATIO
    pass_count = sum(1 for m in marks if m >= pass_mark)
    return {
        "total_students": len(marks),
        "average_marks": (sum(marks) / len(marks)).quantize(CENT, rounding=ROUND_HALF_UP),
        "highest_marks": max(marks),
        "lowest_marks": min(marks),
        "pass_count": pass_count,
        "fail_count": len(marks) - pass_count,
        "pass_percentage": _percent(pass_count, len(marks)),
    }


def generate_class_rankings(class_id, context, exam_id=None):
    """
    Rank the ACTIVE students of a class by their percentage over the class's
    results (one exam when `exam_id` is given, otherwise all of them).
    """
    authorize(context, ALL_STAFF)
    school_class = get_visible(SchoolClass, class_id, context, entity="Class")
    results = Result.objects.select_related("exam")
    if exam_id is not None:
        exam = get_visible(Exam, exam_id, context)
        results = results.filter(exam=exam)

    enrollments = (
        Enrollment.objects.for_school(school_class.school_id)
        .filter(school_class=school_class, status=EnrollmentStatus.ACTIVE)
        .select_related("student")
        .prefetch_related(Prefetch("results", queryset=results))
    )
    rows = []
    for enrollment in enrollments:
        total = sum((r.marks for r in enrollment.results.all()), Decimal("0"))
        total_max = sum(r.exam.max_marks for r in enrollment.results.all())
        rows.append({
            "student_id": enrollment.student_id,
            "student_name": str(enrollment.student),
            "total_marks": total,
            "average_percentage": _percent(total, total_max),
        })

    rows.sort(key=lambda row: row["average_percentage"], reverse=True)
    for position, row in enumerate(rows, start=1):
        row["rank"] = position
    return rows


def get_class_attendance_summary(class_id, term_id, context):
    authorize(context, ALL_STAFF)
    school_class = get_visible(SchoolClass, class_id, context, entity="Class")
    term = get_visible(Term, term_id, context)
    if term.school_id != school_class.school_id:
        raise NotFoundError("Term", term_id)

    enrollments = (
        Enrollment.objects.for_school(school_class.school_id)
        .filter(school_class=school_class, status=EnrollmentStatus.ACTIVE)
        .select_related("student")
        .prefetch_related(
            Prefetch("attendances", queryset=Attendance.objects.filter(term=term))
        )
    )
    summaries = []
    for enrollment in enrollments:
        records = enrollment.attendances.all()
        present = sum(1 for a in records if a.is_present)
        summaries.append({
            "student_id": enrollment.student_id,
            "student_name": str(enrollment.student),
            "total_days": len(records),
            "present_days": present,
            "attendance_percentage": _percent(present, len(records)),
        })
    summaries.sort(key=lambda row: row["attendance_percentage"], reverse=True)

    # distinct days any student of the class was marked in this term
    total_days = (
        Attendance.objects.filter(term=term, enrollment__school_class=school_class)
        .values("date")
        .distinct()
        .count()
    )
    average = Decimal("0.00")
    if summaries:
        average = (
            sum(row["attendance_percentage"] for row in summaries) / len(summaries)
        ).quantize(CENT, rounding=ROUND_HALF_UP)
    return {
        "total_students": len(summaries),
        "total_days": total_days,
        "average_attendance_percentage": average,
        "student_summaries": summaries,
    }
