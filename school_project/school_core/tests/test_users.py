import pytest
from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import (ConflictError, ForbiddenError, NotFoundError,
                          ServiceValidationError)
from ..models import Role, User
from ..services import change_user_role, create_user
from .utils import context_for, make_world, platform_context


class UserAdministrationTests(TestCase):
    def setUp(self):
        self.world = make_world("alpha", students=0)
        self.platform_user = User.objects.create_user(
            username="root", password="pw", role=Role.SUPER_ADMIN
        )
        self.platform = context_for(self.platform_user)

    def test_admin_creates_teacher_in_own_school(self):
        user = create_user("t2", Role.TEACHER, self.world.admin, password="pw")
        self.assertEqual(user.school_id, self.world.school.pk)
        self.assertTrue(user.check_password("pw"))

    def test_admin_cannot_create_platform_identity(self):
        with self.assertRaises(ForbiddenError):
            create_user("boss", Role.SUPER_ADMIN, self.world.admin)
        self.assertFalse(User.objects.filter(username="boss").exists())

    def test_admin_cannot_create_in_other_school(self):
        other = make_world("beta", students=0)
        with self.assertRaises(ForbiddenError):
            create_user("spy", Role.TEACHER, self.world.admin, school_id=other.school.pk)

    def test_platform_identity_rules(self):
        user = create_user("root2", Role.SUPER_ADMIN, self.platform)
        self.assertIsNone(user.school_id)
        with self.assertRaises(ServiceValidationError):
            create_user("root3", Role.SUPER_ADMIN, self.platform, school_id=self.world.school.pk)
        with self.assertRaises(NotFoundError):
            create_user("x", Role.ADMIN, self.platform, school_id=999999)

    def test_duplicate_username(self):
        with self.assertRaises(ConflictError):
            create_user("alpha_teacher", Role.TEACHER, self.world.admin)

    def test_teacher_cannot_manage_users(self):
        with self.assertRaises(ForbiddenError):
            create_user("s1", Role.STUDENT, self.world.teacher)

    def test_change_role_within_privilege(self):
        teacher = self.world.users[Role.TEACHER]
        user = change_user_role(teacher.pk, Role.ACCOUNTANT, self.world.admin)
        self.assertEqual(user.role, Role.ACCOUNTANT)
        with self.assertRaises(ForbiddenError):
            change_user_role(teacher.pk, Role.SUPER_ADMIN, self.world.admin)

    def test_platform_identity_invisible_to_school_admin(self):
        with self.assertRaises(NotFoundError):
            change_user_role(self.platform_user.pk, Role.STUDENT, self.world.admin)

    def test_platform_can_promote_school_admin(self):
        user = change_user_role(self.world.users[Role.TEACHER].pk, Role.ADMIN, platform_context())
        self.assertEqual(user.role, Role.ADMIN)


@pytest.mark.django_db
def test_user_clean_enforces_school_rules():
    world = make_world("alpha", students=0)
    with pytest.raises(ValidationError):
        User(username="bad1", role=Role.SUPER_ADMIN, school=world.school).clean()
    with pytest.raises(ValidationError):
        User(username="bad2", role=Role.TEACHER, school=None).clean()
