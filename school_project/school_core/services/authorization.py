"""
Role-group and tenant-ownership predicates.

Every service entry point calls these before touching storage, so a failed
check raises ForbiddenError with no side effect.
"""
from typing import Iterable, Optional

from ..exceptions import ForbiddenError, ServiceValidationError
from ..models.school import Role

# Highest privilege first
ROLE_HIERARCHY = [
    Role.SUPER_ADMIN,
    Role.ADMIN,
    Role.TEACHER,
    Role.ACCOUNTANT,
    Role.PARENT,
    Role.STUDENT,
]

PLATFORM_ADMINS = (Role.SUPER_ADMIN,)
SCHOOL_ADMINS = (Role.SUPER_ADMIN, Role.ADMIN)
ACADEMIC_STAFF = (Role.SUPER_ADMIN, Role.ADMIN, Role.TEACHER)
FINANCIAL_STAFF = (Role.SUPER_ADMIN, Role.ADMIN, Role.ACCOUNTANT)
ALL_STAFF = (Role.SUPER_ADMIN, Role.ADMIN, Role.TEACHER, Role.ACCOUNTANT)
NON_STUDENTS = (Role.SUPER_ADMIN, Role.ADMIN, Role.TEACHER, Role.ACCOUNTANT, Role.PARENT)
ALL_USERS = tuple(ROLE_HIERARCHY)


def _rank(role) -> int:
    # lower rank == more privilege; unknown roles rank below STUDENT
    try:
        return ROLE_HIERARCHY.index(role)
    except ValueError:
        return len(ROLE_HIERARCHY)


def check_role(context, allowed_roles: Iterable[str]) -> None:
    allowed = list(allowed_roles)
    if context.role not in allowed:
        raise ForbiddenError(
            f"Access denied. Required role(s): {', '.join(str(r) for r in allowed)}"
        )


def require_school_context(context) -> None:
    """Non-platform callers must carry a school."""
    if not context.is_platform and context.school_id is None:
        raise ForbiddenError("User must be associated with a school")


def check_tenant_access(context, target_school_id: Optional[int]) -> None:
    if context.is_platform:
        return
    if context.school_id is None or context.school_id != target_school_id:
        raise ForbiddenError("Access denied to another school's data")


def has_role(user_role, minimum_role) -> bool:
    return _rank(user_role) <= _rank(minimum_role)


def check_minimum_role(context, minimum_role) -> None:
    if not has_role(context.role, minimum_role):
        raise ForbiddenError(f"Access denied. Requires {minimum_role} or higher")


def check_role_assignment(context, target_role, target_school_id, current_role=None) -> None:
    """Guard for creating an identity or changing its role.

    `current_role` is the role the identity holds today (None when creating).
    """
    if target_role not in ROLE_HIERARCHY:
        raise ServiceValidationError(f"Unknown role: {target_role}")

    # never grant above yourself, never touch anyone above yourself
    if _rank(target_role) < _rank(context.role):
        raise ForbiddenError(f"Cannot assign role {target_role} above your own")
    if current_role is not None and _rank(current_role) < _rank(context.role):
        raise ForbiddenError(f"Cannot modify an identity with role {current_role}")

    if target_role == Role.SUPER_ADMIN and target_school_id is not None:
        raise ServiceValidationError("SUPER_ADMIN users must not be associated with a school")
    if target_school_id is None:
        if not context.is_platform:
            raise ForbiddenError("Only platform administrators can manage users without a school")
        if target_role != Role.SUPER_ADMIN:
            raise ServiceValidationError(f"{target_role} users must belong to a school")
        return

    check_tenant_access(context, target_school_id)


def authorize(context, allowed_roles: Iterable[str]) -> None:
    """Role check plus school presence; the common preamble of every operation."""
    check_role(context, allowed_roles)
    require_school_context(context)
