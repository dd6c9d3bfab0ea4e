from decimal import Decimal

import pytest
from django.test import TestCase
from django.utils import timezone

from ..exceptions import (ConflictError, ForbiddenError, NotFoundError,
                          ServiceValidationError)
from ..models import Enrollment, EnrollmentStatus, Result, Student
from ..services import (bulk_create_enrollments, complete_enrollment,
                        create_enrollment, delete_enrollment, drop_enrollment,
                        get_enrollment, list_enrollments,
                        mark_previous_enrollments_completed,
                        promote_students, reactivate_enrollment,
                        transfer_student)
from .utils import enroll, make_exam, make_invoice, make_world


class CreateEnrollmentTests(TestCase):
    def setUp(self):
        self.world = make_world("alpha", students=3)
        self.student = self.world.students[0]

    def test_create_active_enrollment(self):
        e = create_enrollment(
            self.student.pk, self.world.year.pk, self.world.class_a.pk, self.world.admin
        )
        self.assertEqual(e.status, EnrollmentStatus.ACTIVE)
        self.assertEqual(e.school_id, self.world.school.pk)
        self.assertIsNone(e.completion_date)

    def test_duplicate_student_year_is_conflict(self):
        create_enrollment(self.student.pk, self.world.year.pk, self.world.class_a.pk, self.world.admin)
        with self.assertRaises(ConflictError):
            create_enrollment(
                self.student.pk, self.world.year.pk, self.world.class_b.pk, self.world.admin
            )
        self.assertEqual(Enrollment.objects.filter(student=self.student).count(), 1)

    def test_class_must_belong_to_the_year(self):
        with self.assertRaises(NotFoundError):
            create_enrollment(
                self.student.pk, self.world.year.pk, self.world.next_class.pk, self.world.admin
            )

    def test_foreign_and_deleted_students_are_not_found(self):
        other = make_world("beta", students=1)
        with self.assertRaises(NotFoundError):
            create_enrollment(
                other.students[0].pk, self.world.year.pk, self.world.class_a.pk, self.world.admin
            )

        self.student.deleted_at = timezone.now()
        self.student.save()
        with self.assertRaises(NotFoundError):
            create_enrollment(
                self.student.pk, self.world.year.pk, self.world.class_a.pk, self.world.admin
            )

    def test_teacher_cannot_enroll(self):
        with self.assertRaises(ForbiddenError):
            create_enrollment(
                self.student.pk, self.world.year.pk, self.world.class_a.pk, self.world.teacher
            )
        self.assertFalse(Enrollment.objects.exists())

    def test_bulk_create_reports_per_student(self):
        s1, s2, s3 = self.world.students
        enroll(self.world, s2)
        result = bulk_create_enrollments(
            [
                {"student_id": s1.pk, "academic_year_id": self.world.year.pk, "class_id": self.world.class_a.pk},
                {"student_id": s2.pk, "academic_year_id": self.world.year.pk, "class_id": self.world.class_a.pk},
                {"student_id": s3.pk, "academic_year_id": self.world.year.pk},
            ],
            self.world.admin,
        )
        self.assertEqual(result.success_count, 1)
        self.assertEqual(result.error_count, 2)
        by_student = {err["student_id"]: err["code"] for err in result.errors}
        self.assertEqual(by_student, {s2.pk: "CONFLICT", s3.pk: "VALIDATION_ERROR"})
        self.assertTrue(Enrollment.objects.filter(student=s1).exists())


class TransitionTests(TestCase):
    def setUp(self):
        self.world = make_world("alpha", students=3)
        self.enrollment = enroll(self.world, self.world.students[0])

    def test_transfer_changes_class_only(self):
        before = Enrollment.objects.get(pk=self.enrollment.pk)
        e = transfer_student(self.enrollment.pk, self.world.class_b.pk, self.world.admin)
        e.refresh_from_db()
        self.assertEqual(e.school_class_id, self.world.class_b.pk)
        self.assertEqual(e.status, EnrollmentStatus.ACTIVE)
        self.assertEqual(e.enrollment_date, before.enrollment_date)
        self.assertEqual(e.academic_year_id, before.academic_year_id)

    def test_transfer_cannot_cross_years(self):
        with self.assertRaises(NotFoundError):
            transfer_student(self.enrollment.pk, self.world.next_class.pk, self.world.admin)

    def test_transfer_requires_active(self):
        drop_enrollment(self.enrollment.pk, self.world.admin)
        with self.assertRaises(ServiceValidationError):
            transfer_student(self.enrollment.pk, self.world.class_b.pk, self.world.admin)

    def test_drop_and_complete(self):
        e = drop_enrollment(self.enrollment.pk, self.world.admin)
        self.assertEqual(e.status, EnrollmentStatus.DROPPED)
        self.assertIsNotNone(e.completion_date)

        # same transition again is a no-op
        again = drop_enrollment(self.enrollment.pk, self.world.admin)
        self.assertEqual(again.completion_date, e.completion_date)

        # terminal states don't move sideways
        with self.assertRaises(ConflictError):
            complete_enrollment(self.enrollment.pk, self.world.admin)

    def test_reactivate(self):
        complete_enrollment(self.enrollment.pk, self.world.admin)
        e = reactivate_enrollment(self.enrollment.pk, self.world.admin, class_id=self.world.class_b.pk)
        self.assertEqual(e.status, EnrollmentStatus.ACTIVE)
        self.assertIsNone(e.completion_date)
        self.assertEqual(e.school_class_id, self.world.class_b.pk)

        with self.assertRaises(ConflictError):
            reactivate_enrollment(self.enrollment.pk, self.world.admin)

    def test_direct_model_transition_map(self):
        self.enrollment.transition_to(EnrollmentStatus.COMPLETE)
        with self.assertRaises(ConflictError):
            self.enrollment.transition_to(EnrollmentStatus.ACTIVE)

    def test_mark_previous_completed_counts(self):
        enroll(self.world, self.world.students[0], school_class=self.world.next_class)
        count = mark_previous_enrollments_completed(self.world.students[0].pk, self.world.admin)
        self.assertEqual(count, 2)
        self.assertFalse(
            Enrollment.objects.filter(
                student=self.world.students[0], status=EnrollmentStatus.ACTIVE
            ).exists()
        )


class PromoteStudentsTests(TestCase):
    def setUp(self):
        self.world = make_world("alpha", students=3)
        self.current = [enroll(self.world, s) for s in self.world.students]

    def _ids(self):
        return [s.pk for s in self.world.students]

    def test_promotes_everyone_and_completes_previous(self):
        created = promote_students(
            self._ids(), self.world.next_year.pk, self.world.next_class.pk, self.world.admin
        )
        self.assertEqual(len(created), 3)
        for e in created:
            self.assertEqual(e.academic_year_id, self.world.next_year.pk)
            self.assertEqual(e.status, EnrollmentStatus.ACTIVE)
        for e in self.current:
            e.refresh_from_db()
            self.assertEqual(e.status, EnrollmentStatus.COMPLETE)

    def test_one_conflict_rolls_back_the_whole_promotion(self):
        # last student already sits in the target year
        enroll(self.world, self.world.students[2], school_class=self.world.next_class)

        with self.assertRaises(ConflictError):
            promote_students(
                self._ids(), self.world.next_year.pk, self.world.next_class.pk, self.world.admin
            )

        # zero new enrollments and previous ones untouched
        self.assertEqual(
            Enrollment.objects.filter(academic_year=self.world.next_year).count(), 1
        )
        for e in self.current:
            e.refresh_from_db()
            self.assertEqual(e.status, EnrollmentStatus.ACTIVE)

    def test_unknown_student_rolls_back(self):
        with self.assertRaises(NotFoundError):
            promote_students(
                self._ids() + [999999],
                self.world.next_year.pk,
                self.world.next_class.pk,
                self.world.admin,
            )
        self.assertFalse(Enrollment.objects.filter(academic_year=self.world.next_year).exists())

    def test_keep_previous_active_when_asked(self):
        promote_students(
            self._ids()[:1],
            self.world.next_year.pk,
            self.world.next_class.pk,
            self.world.admin,
            mark_previous_as_completed=False,
        )
        self.current[0].refresh_from_db()
        self.assertEqual(self.current[0].status, EnrollmentStatus.ACTIVE)

    def test_completion_flag_must_be_boolean(self):
        # a JSON string "false" must not read as truthy
        with self.assertRaises(ServiceValidationError):
            promote_students(
                self._ids(),
                self.world.next_year.pk,
                self.world.next_class.pk,
                self.world.admin,
                mark_previous_as_completed="false",
            )
        self.assertFalse(Enrollment.objects.filter(academic_year=self.world.next_year).exists())

    def test_target_class_must_be_in_target_year(self):
        with self.assertRaises(NotFoundError):
            promote_students(self._ids(), self.world.next_year.pk, self.world.class_a.pk, self.world.admin)

    def test_empty_list_rejected(self):
        with self.assertRaises(ServiceValidationError):
            promote_students([], self.world.next_year.pk, self.world.next_class.pk, self.world.admin)


class DeleteEnrollmentTests(TestCase):
    def setUp(self):
        self.world = make_world("alpha", students=2)
        self.enrollment = enroll(self.world, self.world.students[0])

    def test_delete_with_invoice_is_conflict(self):
        make_invoice(self.enrollment, self.world.term1, "10.00")
        with self.assertRaises(ConflictError):
            delete_enrollment(self.enrollment.pk, self.world.admin)
        self.assertTrue(Enrollment.objects.filter(pk=self.enrollment.pk).exists())

    def test_delete_with_result_is_conflict(self):
        exam = make_exam(self.world)
        Result.objects.create(
            school=self.world.school,
            enrollment=self.enrollment,
            exam=exam,
            student=self.enrollment.student,
            marks=Decimal("50"),
        )
        with self.assertRaises(ConflictError):
            delete_enrollment(self.enrollment.pk, self.world.admin)

    def test_delete_clean_enrollment(self):
        delete_enrollment(self.enrollment.pk, self.world.admin)
        self.assertFalse(Enrollment.objects.filter(pk=self.enrollment.pk).exists())
        # the student row is untouched
        self.assertTrue(Student.objects.filter(pk=self.world.students[0].pk).exists())


@pytest.mark.django_db
def test_list_and_get_enrollments():
    world = make_world("alpha", students=3)
    e1 = enroll(world, world.students[0])
    enroll(world, world.students[1], school_class=world.class_b)
    enroll(world, world.students[2], status=EnrollmentStatus.DROPPED)

    rows, total = list_enrollments(world.teacher, class_id=world.class_a.pk)
    assert total == 2

    rows, total = list_enrollments(world.teacher, status=EnrollmentStatus.ACTIVE)
    assert total == 2
    assert all(e.status == EnrollmentStatus.ACTIVE for e in rows)

    assert get_enrollment(e1.pk, world.teacher).pk == e1.pk
    with pytest.raises(ForbiddenError):
        get_enrollment(e1.pk, world.accountant)
