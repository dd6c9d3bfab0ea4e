import logging

from django.db import transaction
from django.utils import timezone

from ..exceptions import (ConflictError, NotFoundError,
                          ServiceValidationError)
from ..models import AcademicYear, Enrollment, EnrollmentStatus, SchoolClass
from .audit_helper import record_audit, snapshot
from .authorization import ACADEMIC_STAFF, SCHOOL_ADMINS, authorize
from .batch import Atomicity, entry_key, process_batch, require_entry
from .validation import get_visible, get_visible_student

logger = logging.getLogger(__name__)

ENROLLMENT_AUDIT_FIELDS = [
    "student", "academic_year", "school_class", "status", "enrollment_date", "completion_date",
]
MAX_PAGE_SIZE = 100


def _class_in_year(class_id, academic_year, context):
    # a class outside the target year looks the same as a missing class
    qs = SchoolClass.objects.visible_to(context).filter(
        academic_year=academic_year, school_id=academic_year.school_id
    )
    return get_visible(SchoolClass, class_id, context, entity="Class", queryset=qs)


def _locked_enrollment(enrollment_id, context):
    return get_visible(
        Enrollment,
        enrollment_id,
        context,
        queryset=Enrollment.objects.visible_to(context).select_for_update(),
    )


def _enroll(student_id, academic_year, school_class, context, status=EnrollmentStatus.ACTIVE):
    student = get_visible_student(student_id, context)
    if student.school_id != academic_year.school_id:
        raise NotFoundError("Student", student_id)

    if Enrollment.objects.filter(student=student, academic_year=academic_year).exists():
        raise ConflictError("Student is already enrolled in this academic year")

    now = timezone.now()
    enrollment = Enrollment.objects.create(
        school_id=academic_year.school_id,
        student=student,
        academic_year=academic_year,
        school_class=school_class,
        status=status,
        enrollment_date=now,
        completion_date=None if status == EnrollmentStatus.ACTIVE else now,
    )
    record_audit(
        context=context,
        action="CREATE",
        entity_kind="Enrollment",
        entity_id=enrollment.pk,
        school_id=enrollment.school_id,
        after=snapshot(enrollment, ENROLLMENT_AUDIT_FIELDS),
    )
    return enrollment


def _create_from_ids(student_id, academic_year_id, class_id, context, status):
    if status not in EnrollmentStatus.values:
        raise ServiceValidationError(f"Invalid enrollment status: {status}")
    academic_year = get_visible(AcademicYear, academic_year_id, context, entity="Academic year")
    school_class = _class_in_year(class_id, academic_year, context)
    return _enroll(student_id, academic_year, school_class, context, status=status)


# ----------------------------
# Creation
# ----------------------------
def create_enrollment(student_id, academic_year_id, class_id, context, status=EnrollmentStatus.ACTIVE):
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        enrollment = _create_from_ids(student_id, academic_year_id, class_id, context, status)
    logger.info("Enrolled student %s in class %s", student_id, class_id)
    return enrollment


def bulk_create_enrollments(entries, context):
    """
    entries: [{"student_id", "academic_year_id", "class_id", "status"?}, ...]
    Each entry succeeds or fails on its own, errors are keyed by student_id.
    """
    authorize(context, SCHOOL_ADMINS)

    def create_one(entry):
        require_entry(entry)
        missing = [
            name for name in ("student_id", "academic_year_id", "class_id")
            if entry.get(name) is None
        ]
        if missing:
            raise ServiceValidationError(f"Missing field(s): {', '.join(missing)}")
        return _create_from_ids(
            entry["student_id"],
            entry["academic_year_id"],
            entry["class_id"],
            context,
            entry.get("status", EnrollmentStatus.ACTIVE),
        )

    return process_batch(
        entries,
        create_one,
        key=entry_key("student_id"),
        key_name="student_id",
        atomicity=Atomicity.PER_ITEM,
    )


# ----------------------------
# Transitions
# ----------------------------
def transfer_student(enrollment_id, new_class_id, context):
    """Move an ACTIVE enrollment to another class of the same academic year."""
    authorize(context, SCHOOL_ADMINS)

    with transaction.atomic():
        enrollment = _locked_enrollment(enrollment_id, context)
        if enrollment.status != EnrollmentStatus.ACTIVE:
            raise ServiceValidationError("Can only transfer active enrollments")

        # crossing years is a promotion, not a transfer
        new_class = _class_in_year(new_class_id, enrollment.academic_year, context)
        if new_class.pk == enrollment.school_class_id:
            return enrollment

        before = snapshot(enrollment, ENROLLMENT_AUDIT_FIELDS)
        enrollment.school_class = new_class
        enrollment.save(update_fields=["school_class", "updated_at"])
        record_audit(
            context=context,
            action="TRANSFER",
            entity_kind="Enrollment",
            entity_id=enrollment.pk,
            school_id=enrollment.school_id,
            before=before,
            after=snapshot(enrollment, ENROLLMENT_AUDIT_FIELDS),
        )
    logger.info("Transferred enrollment %s to class %s", enrollment.pk, new_class.pk)
    return enrollment


def promote_students(
    student_ids,
    target_academic_year_id,
    target_class_id,
    context,
    mark_previous_as_completed=True,
):
    """
    Enroll every student into the target year/class as one unit.
    The first failing student rolls the whole promotion back.
    """
    authorize(context, SCHOOL_ADMINS)
    if not isinstance(mark_previous_as_completed, bool):
        raise ServiceValidationError("mark_previous_as_completed must be true or false")
    if isinstance(student_ids, (str, dict)):
        raise ServiceValidationError("student_ids must be a list")
    student_ids = list(student_ids)
    if not student_ids:
        raise ServiceValidationError("At least one student is required")

    academic_year = get_visible(
        AcademicYear, target_academic_year_id, context, entity="Academic year"
    )
    school_class = _class_in_year(target_class_id, academic_year, context)

    def promote_one(student_id):
        student = get_visible_student(student_id, context)
        if student.school_id != academic_year.school_id:
            raise NotFoundError("Student", student_id)
        if Enrollment.objects.filter(student=student, academic_year=academic_year).exists():
            raise ConflictError(
                f"Student {student_id} is already enrolled in the target academic year"
            )

        completed = 0
        if mark_previous_as_completed:
            completed = _complete_active(student)
        enrollment = _enroll(student.pk, academic_year, school_class, context)
        record_audit(
            context=context,
            action="PROMOTE",
            entity_kind="Enrollment",
            entity_id=enrollment.pk,
            school_id=enrollment.school_id,
            metadata={"student_id": student.pk, "previous_completed": completed},
        )
        return enrollment

    result = process_batch(
        student_ids,
        promote_one,
        key=lambda student_id: student_id,
        key_name="student_id",
        atomicity=Atomicity.WHOLE_BATCH,
    )
    logger.info(
        "Promoted %d student(s) into academic year %s",
        result.success_count, academic_year.pk,
    )
    return result.succeeded


def _complete_active(student):
    now = timezone.now()
    return Enrollment.objects.filter(
        student=student, status=EnrollmentStatus.ACTIVE
    ).update(status=EnrollmentStatus.COMPLETE, completion_date=now, updated_at=now)


def mark_previous_enrollments_completed(student_id, context):
    """Flip every ACTIVE enrollment of the student to COMPLETE; returns the count."""
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        student = get_visible_student(student_id, context)
        count = _complete_active(student)
        if count:
            record_audit(
                context=context,
                action="COMPLETE_PREVIOUS",
                entity_kind="Student",
                entity_id=student.pk,
                school_id=student.school_id,
                metadata={"completed": count},
            )
    return count


def _finish(enrollment_id, context, target_status, action):
    authorize(context, SCHOOL_ADMINS)

    with transaction.atomic():
        enrollment = _locked_enrollment(enrollment_id, context)
        # repeating the same terminal transition changes nothing
        if enrollment.status == target_status:
            return enrollment

        before = snapshot(enrollment, ENROLLMENT_AUDIT_FIELDS)
        enrollment.transition_to(target_status)
        record_audit(
            context=context,
            action=action,
            entity_kind="Enrollment",
            entity_id=enrollment.pk,
            school_id=enrollment.school_id,
            before=before,
            after=snapshot(enrollment, ENROLLMENT_AUDIT_FIELDS),
        )
    logger.info("Enrollment %s is now %s", enrollment.pk, target_status)
    return enrollment


def drop_enrollment(enrollment_id, context):
    return _finish(enrollment_id, context, EnrollmentStatus.DROPPED, "DROP")


def complete_enrollment(enrollment_id, context):
    return _finish(enrollment_id, context, EnrollmentStatus.COMPLETE, "COMPLETE")


def reactivate_enrollment(enrollment_id, context, class_id=None):
    """Bring a DROPPED/COMPLETE enrollment back to ACTIVE, optionally in another class."""
    authorize(context, SCHOOL_ADMINS)

    with transaction.atomic():
        enrollment = _locked_enrollment(enrollment_id, context)
        if enrollment.status == EnrollmentStatus.ACTIVE:
            raise ConflictError("Enrollment is already active")

        before = snapshot(enrollment, ENROLLMENT_AUDIT_FIELDS)
        if class_id is not None:
            enrollment.school_class = _class_in_year(class_id, enrollment.academic_year, context)
        enrollment.status = EnrollmentStatus.ACTIVE
        enrollment.enrollment_date = timezone.now()
        enrollment.completion_date = None
        enrollment.save(update_fields=[
            "school_class", "status", "enrollment_date", "completion_date", "updated_at",
        ])
        record_audit(
            context=context,
            action="REACTIVATE",
            entity_kind="Enrollment",
            entity_id=enrollment.pk,
            school_id=enrollment.school_id,
            before=before,
            after=snapshot(enrollment, ENROLLMENT_AUDIT_FIELDS),
        )
    return enrollment


# ----------------------------
# Reads / delete
# ----------------------------
def get_enrollment(enrollment_id, context):
    authorize(context, ACADEMIC_STAFF)
    qs = Enrollment.objects.visible_to(context).select_related(
        "student", "academic_year", "school_class"
    )
    return get_visible(Enrollment, enrollment_id, context, queryset=qs)


def list_enrollments(
    context,
    academic_year_id=None,
    class_id=None,
    student_id=None,
    status=None,
    page=1,
    limit=20,
):
    """Returns (enrollments on the page, total matching count)."""
    authorize(context, ACADEMIC_STAFF)
    if page < 1:
        raise ServiceValidationError("page must be at least 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ServiceValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if status is not None and status not in EnrollmentStatus.values:
        raise ServiceValidationError(f"Invalid enrollment status: {status}")

    qs = Enrollment.objects.visible_to(context).select_related("student", "school_class")
    if academic_year_id is not None:
        qs = qs.filter(academic_year_id=academic_year_id)
    if class_id is not None:
        qs = qs.filter(school_class_id=class_id)
    if student_id is not None:
        qs = qs.filter(student_id=student_id)
    if status is not None:
        qs = qs.filter(status=status)

    total = qs.count()
    offset = (page - 1) * limit
    return list(qs.order_by("-enrollment_date", "-id")[offset:offset + limit]), total


def delete_enrollment(enrollment_id, context):
    authorize(context, SCHOOL_ADMINS)

    with transaction.atomic():
        enrollment = _locked_enrollment(enrollment_id, context)
        if enrollment.results.exists():
            raise ConflictError("Cannot delete enrollment with existing results")
        if enrollment.attendances.exists():
            raise ConflictError("Cannot delete enrollment with attendance records")
        if enrollment.invoices.exists():
            raise ConflictError("Cannot delete enrollment with invoices")

        before = snapshot(enrollment, ENROLLMENT_AUDIT_FIELDS)
        school_id = enrollment.school_id
        enrollment.delete()
        record_audit(
            context=context,
            action="DELETE",
            entity_kind="Enrollment",
            entity_id=enrollment_id,
            school_id=school_id,
            before=before,
        )
    logger.info("Deleted enrollment %s", enrollment_id)
