import logging

from django.db import transaction

from ..exceptions import ConflictError, NotFoundError, ServiceValidationError
from ..models import School, User
from .audit_helper import record_audit
from .authorization import SCHOOL_ADMINS, authorize, check_role_assignment
from .validation import get_visible

logger = logging.getLogger(__name__)


def create_user(username, role, context, school_id=None, email="", password=None):
    """Create an identity; school admins default to their own school."""
    authorize(context, SCHOOL_ADMINS)
    if not username:
        raise ServiceValidationError("username is required")
    if school_id is None and not context.is_platform:
        school_id = context.school_id
    check_role_assignment(context, role, school_id)

    with transaction.atomic():
        if school_id is not None and not School.objects.filter(pk=school_id).exists():
            raise NotFoundError("School", school_id)
        if User.objects.filter(username=username).exists():
            raise ConflictError(f"Username '{username}' is already taken")
        user = User.objects.create_user(
            username=username, email=email, password=password, role=role, school_id=school_id
        )
        record_audit(
            context=context,
            action="CREATE",
            entity_kind="User",
            entity_id=user.pk,
            school_id=school_id,
            after={"username": username, "role": role, "school": school_id},
        )
    logger.info("Created user %s with role %s", user.pk, role)
    return user


def change_user_role(user_id, new_role, context):
    authorize(context, SCHOOL_ADMINS)

    with transaction.atomic():
        user = get_visible(
            User, user_id, context, queryset=User.objects.visible_to(context).select_for_update()
        )
        check_role_assignment(context, new_role, user.school_id, current_role=user.role)
        if user.role == new_role:
            return user

        previous = user.role
        user.role = new_role
        user.save(update_fields=["role"])
        record_audit(
            context=context,
            action="ROLE_CHANGE",
            entity_kind="User",
            entity_id=user.pk,
            school_id=user.school_id,
            before={"role": previous},
            after={"role": new_role},
        )
    logger.info("User %s role changed from %s to %s", user.pk, previous, new_role)
    return user
