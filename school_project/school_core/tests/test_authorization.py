import pytest

from ..context import ServiceContext
from ..exceptions import ForbiddenError, ServiceValidationError
from ..models import Role
from ..services.authorization import (ACADEMIC_STAFF, FINANCIAL_STAFF,
                                      SCHOOL_ADMINS, check_minimum_role,
                                      check_role, check_role_assignment,
                                      check_tenant_access, has_role,
                                      require_school_context)


def ctx(role, school_id=1, user_id=10):
    return ServiceContext(user_id=user_id, school_id=school_id, role=role)


PLATFORM = ServiceContext(user_id=1, school_id=None, role=Role.SUPER_ADMIN)


def test_check_role_allows_listed_roles():
    check_role(ctx(Role.ACCOUNTANT), FINANCIAL_STAFF)
    check_role(ctx(Role.TEACHER), ACADEMIC_STAFF)


def test_check_role_rejects_others_with_roles_in_message():
    with pytest.raises(ForbiddenError) as exc:
        check_role(ctx(Role.TEACHER), FINANCIAL_STAFF)
    assert "ACCOUNTANT" in exc.value.message
    assert exc.value.code == "FORBIDDEN"


def test_tenant_access_same_school_only():
    check_tenant_access(ctx(Role.ADMIN, school_id=1), 1)
    with pytest.raises(ForbiddenError):
        check_tenant_access(ctx(Role.ADMIN, school_id=1), 2)
    with pytest.raises(ForbiddenError):
        check_tenant_access(ctx(Role.ADMIN, school_id=None), None)


def test_platform_role_crosses_tenants():
    check_tenant_access(PLATFORM, 1)
    check_tenant_access(PLATFORM, None)
    require_school_context(PLATFORM)


def test_school_roles_need_a_school():
    with pytest.raises(ForbiddenError):
        require_school_context(ctx(Role.TEACHER, school_id=None))


@pytest.mark.parametrize(
    "role,minimum,expected",
    [
        (Role.SUPER_ADMIN, Role.ADMIN, True),
        (Role.ADMIN, Role.ADMIN, True),
        (Role.TEACHER, Role.ACCOUNTANT, True),
        (Role.PARENT, Role.TEACHER, False),
        (Role.STUDENT, Role.PARENT, False),
    ],
)
def test_has_role_follows_hierarchy(role, minimum, expected):
    assert has_role(role, minimum) is expected


def test_check_minimum_role():
    check_minimum_role(ctx(Role.ADMIN), Role.TEACHER)
    with pytest.raises(ForbiddenError):
        check_minimum_role(ctx(Role.PARENT), Role.TEACHER)


class TestRoleAssignment:
    def test_admin_can_grant_own_level_and_below(self):
        admin = ctx(Role.ADMIN)
        for role in (Role.ADMIN, Role.TEACHER, Role.STUDENT):
            check_role_assignment(admin, role, 1)

    def test_cannot_grant_above_self(self):
        with pytest.raises(ForbiddenError):
            check_role_assignment(ctx(Role.ADMIN), Role.SUPER_ADMIN, None)
        with pytest.raises(ForbiddenError):
            check_role_assignment(ctx(Role.TEACHER), Role.ADMIN, 1)

    def test_cannot_modify_identity_above_self(self):
        with pytest.raises(ForbiddenError):
            check_role_assignment(ctx(Role.TEACHER), Role.STUDENT, 1, current_role=Role.ADMIN)

    def test_other_school_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            check_role_assignment(ctx(Role.ADMIN, school_id=1), Role.TEACHER, 2)

    def test_only_platform_manages_schoolless_identities(self):
        check_role_assignment(PLATFORM, Role.SUPER_ADMIN, None)
        with pytest.raises(ServiceValidationError):
            check_role_assignment(PLATFORM, Role.SUPER_ADMIN, 3)
        with pytest.raises(ServiceValidationError):
            check_role_assignment(PLATFORM, Role.ADMIN, None)

    def test_unknown_role(self):
        with pytest.raises(ServiceValidationError):
            check_role_assignment(ctx(Role.ADMIN), "JANITOR", 1)


def test_role_groups():
    assert Role.ACCOUNTANT not in ACADEMIC_STAFF
    assert Role.TEACHER not in FINANCIAL_STAFF
    assert set(SCHOOL_ADMINS) == {Role.SUPER_ADMIN, Role.ADMIN}
