import logging

from django.db import transaction

from ..exceptions import ConflictError, ServiceValidationError
from ..models import AcademicYear, School, Term
from .audit_helper import record_audit, snapshot
from .authorization import ALL_USERS, SCHOOL_ADMINS, authorize
from .validation import get_visible, to_date, validate_date_range

logger = logging.getLogger(__name__)


def _own_school_id(context):
    # new periods always belong to the caller's school
    if context.school_id is None:
        raise ServiceValidationError("A school context is required for this operation")
    return context.school_id


def _clean_name(name):
    if not isinstance(name, str) or not name.strip():
        raise ServiceValidationError("name must be a non-empty string")
    return name.strip()


# ----------------------------
# Academic years
# ----------------------------
def create_academic_year(name, start_date, end_date, context, is_current=False):
    authorize(context, SCHOOL_ADMINS)
    school_id = _own_school_id(context)
    start_date = to_date(start_date, "start_date")
    end_date = to_date(end_date, "end_date")
    validate_date_range(start_date, end_date, label="Academic year end date")

    with transaction.atomic():
        if AcademicYear.objects.for_school(school_id).filter(name=name).exists():
            raise ConflictError(f"Academic year '{name}' already exists")
        year = AcademicYear.objects.create(
            school_id=school_id, name=name, start_date=start_date, end_date=end_date
        )
        record_audit(
            context=context,
            action="CREATE",
            entity_kind="AcademicYear",
            entity_id=year.pk,
            after=snapshot(year, ["name", "start_date", "end_date", "is_current"]),
        )
        if is_current:
            year = _make_current(year, context)
    logger.info("Created academic year %s for school %s", year.pk, school_id)
    return year


def _make_current(year, context):
    # the school row lock serializes concurrent switches
    school = School.objects.select_for_update().get(pk=year.school_id)
    previous_id = school.current_academic_year_id

    # clear before set, the partial unique index allows one current year
    AcademicYear.objects.for_school(school.pk).filter(is_current=True).exclude(
        pk=year.pk
    ).update(is_current=False)
    year.is_current = True
    year.save(update_fields=["is_current"])
    school.current_academic_year = year
    school.save(update_fields=["current_academic_year"])

    record_audit(
        context=context,
        action="SET_CURRENT",
        entity_kind="AcademicYear",
        entity_id=year.pk,
        school_id=school.pk,
        before={"current_academic_year": previous_id},
        after={"current_academic_year": year.pk},
    )
    return year


def set_current_academic_year(academic_year_id, context):
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        year = get_visible(AcademicYear, academic_year_id, context, entity="Academic year")
        year = _make_current(year, context)
    logger.info("Academic year %s is now current for school %s", year.pk, year.school_id)
    return year


def get_current_academic_year(context):
    authorize(context, ALL_USERS)
    school_id = _own_school_id(context)
    school = School.objects.select_related("current_academic_year").get(pk=school_id)
    return school.current_academic_year


# ----------------------------
# Terms
# ----------------------------
def create_term(academic_year_id, name, start_date, end_date, context):
    authorize(context, SCHOOL_ADMINS)
    start_date = to_date(start_date, "start_date")
    end_date = to_date(end_date, "end_date")
    validate_date_range(start_date, end_date, label="Term end date")

    with transaction.atomic():
        year = get_visible(AcademicYear, academic_year_id, context, entity="Academic year")
        if start_date < year.start_date or end_date > year.end_date:
            raise ServiceValidationError("Term dates must fall within the academic year")
        if year.terms.filter(name=name).exists():
            raise ConflictError(f"Term '{name}' already exists in {year.name}")

        term = Term.objects.create(
            school_id=year.school_id,
            academic_year=year,
            name=name,
            start_date=start_date,
            end_date=end_date,
        )
        record_audit(
            context=context,
            action="CREATE",
            entity_kind="Term",
            entity_id=term.pk,
            school_id=term.school_id,
            after=snapshot(term, ["academic_year", "name", "start_date", "end_date"]),
        )
    return term


def _set_term_lock(term_id, context, locked):
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        term = get_visible(
            Term, term_id, context, queryset=Term.objects.visible_to(context).select_for_update()
        )
        if term.is_locked != locked:
            term.is_locked = locked
            term.save(update_fields=["is_locked"])
            record_audit(
                context=context,
                action="LOCK" if locked else "UNLOCK",
                entity_kind="Term",
                entity_id=term.pk,
                school_id=term.school_id,
                after={"is_locked": locked},
            )
    return term


def lock_term(term_id, context):
    return _set_term_lock(term_id, context, True)


def unlock_term(term_id, context):
    return _set_term_lock(term_id, context, False)


def update_academic_year(academic_year_id, context, name=None, start_date=None,
                         end_date=None, is_current=None):
    """Rename/redate a year; `is_current=True` switches the school's current year."""
    authorize(context, SCHOOL_ADMINS)
    if is_current is not None and not isinstance(is_current, bool):
        raise ServiceValidationError("is_current must be true or false")

    with transaction.atomic():
        year = get_visible(
            AcademicYear,
            academic_year_id,
            context,
            entity="Academic year",
            queryset=AcademicYear.objects.visible_to(context).select_for_update(),
        )
        before = snapshot(year, ["name", "start_date", "end_date", "is_current"])

        if name is not None:
            name = _clean_name(name)
            clash = AcademicYear.objects.for_school(year.school_id).filter(name=name)
            if clash.exclude(pk=year.pk).exists():
                raise ConflictError(f"Academic year '{name}' already exists")
            year.name = name
        if start_date is not None:
            year.start_date = to_date(start_date, "start_date")
        if end_date is not None:
            year.end_date = to_date(end_date, "end_date")
        validate_date_range(year.start_date, year.end_date, label="Academic year end date")
        outside = year.terms.exclude(start_date__gte=year.start_date, end_date__lte=year.end_date)
        if outside.exists():
            raise ServiceValidationError("Existing terms must fall within the academic year")
        if is_current is False and year.is_current:
            raise ServiceValidationError(
                "Set another academic year as current instead of clearing this one"
            )

        year.save(update_fields=["name", "start_date", "end_date"])
        record_audit(
            context=context,
            action="UPDATE",
            entity_kind="AcademicYear",
            entity_id=year.pk,
            school_id=year.school_id,
            before=before,
            after=snapshot(year, ["name", "start_date", "end_date", "is_current"]),
        )
        if is_current and not year.is_current:
            year = _make_current(year, context)
    return year


def delete_academic_year(academic_year_id, context):
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        year = get_visible(AcademicYear, academic_year_id, context, entity="Academic year")
        if year.is_current:
            raise ConflictError("Cannot delete the current academic year")
        if year.enrollments.exists():
            raise ConflictError(
                "Cannot delete academic year with existing enrollments. Archive it instead."
            )
        if year.classes.exists():
            raise ConflictError(
                "Cannot delete academic year with existing classes. Remove classes first."
            )
        if year.terms.exists():
            raise ConflictError(
                "Cannot delete academic year with existing terms. Remove terms first."
            )
        before = snapshot(year, ["name", "start_date", "end_date"])
        school_id = year.school_id
        year.delete()
        record_audit(
            context=context,
            action="DELETE",
            entity_kind="AcademicYear",
            entity_id=academic_year_id,
            school_id=school_id,
            before=before,
        )
    logger.info("Deleted academic year %s", academic_year_id)


def update_term(term_id, context, name=None, start_date=None, end_date=None):
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        term = get_visible(
            Term, term_id, context,
            queryset=Term.objects.visible_to(context).select_for_update(),
        )
        before = snapshot(term, ["name", "start_date", "end_date"])
        year = term.academic_year

        if name is not None:
            name = _clean_name(name)
            if year.terms.filter(name=name).exclude(pk=term.pk).exists():
                raise ConflictError(f"Term '{name}' already exists in {year.name}")
            term.name = name
        if start_date is not None:
            term.start_date = to_date(start_date, "start_date")
        if end_date is not None:
            term.end_date = to_date(end_date, "end_date")
        validate_date_range(term.start_date, term.end_date, label="Term end date")
        if term.start_date < year.start_date or term.end_date > year.end_date:
            raise ServiceValidationError("Term dates must fall within the academic year")

        term.save(update_fields=["name", "start_date", "end_date"])
        record_audit(
            context=context,
            action="UPDATE",
            entity_kind="Term",
            entity_id=term.pk,
            school_id=term.school_id,
            before=before,
            after=snapshot(term, ["name", "start_date", "end_date"]),
        )
    return term


def delete_term(term_id, context):
    authorize(context, SCHOOL_ADMINS)
    with transaction.atomic():
        term = get_visible(Term, term_id, context)
        # (related name, label) of rows that keep a term alive
        for related, label in (
            ("exams", "exams"),
            ("attendances", "attendance records"),
            ("invoices", "invoices"),
        ):
            if getattr(term, related).exists():
                raise ConflictError(f"Cannot delete term with associated {label}")
        before = snapshot(term, ["academic_year", "name", "start_date", "end_date"])
        school_id = term.school_id
        term.delete()
        record_audit(
            context=context,
            action="DELETE",
            entity_kind="Term",
            entity_id=term_id,
            school_id=school_id,
            before=before,
        )
    logger.info("Deleted term %s", term_id)
