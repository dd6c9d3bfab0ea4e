import datetime

import pytest
from django.test import TestCase, override_settings

from ..exceptions import ConflictError, ServiceValidationError
from ..models import AcademicYear, Enrollment, Result, School
from ..services import (bulk_create_enrollments, bulk_enter_results,
                        bulk_update_attendance)
from ..services.batch import Atomicity, BatchResult, process_batch
from .utils import enroll, make_exam, make_world


class ProcessBatchTests(TestCase):
    def setUp(self):
        self.school = School.objects.create(name="Batch", slug="batch")

    def make_year(self, name):
        """Insert without any pre-check so duplicates hit the unique constraint."""
        if name == "bad":
            raise ServiceValidationError("bad name")
        return AcademicYear.objects.create(
            school=self.school,
            name=name,
            start_date=datetime.date(2025, 1, 1),
            end_date=datetime.date(2025, 12, 31),
        )

    def years(self):
        return AcademicYear.objects.for_school(self.school.pk)

    def test_item_failure_does_not_roll_back_siblings(self):
        result = process_batch(
            ["y1", "bad", "y3"], self.make_year, key=lambda n: n, key_name="name"
        )
        self.assertEqual(result.success_count, 2)
        self.assertEqual(result.errors, [{"name": "bad", "error": "bad name", "code": "VALIDATION_ERROR"}])
        self.assertListEqual(
            sorted(self.years().values_list("name", flat=True)), ["y1", "y3"]
        )

    def test_integrity_error_aborts_only_its_chunk(self):
        names = [f"y{i}" for i in range(25)]
        names[14] = names[11]  # duplicate inside the second chunk

        result = process_batch(names, self.make_year, key=lambda n: n, key_name="name")

        # chunk 2 (items 10..19) rolled back and reported item by item
        self.assertEqual(result.success_count, 15)
        self.assertEqual(result.error_count, 10)
        self.assertTrue(all(err["code"] == "CONFLICT" for err in result.errors))
        self.assertEqual(self.years().count(), 15)
        self.assertFalse(self.years().filter(name="y10").exists())
        self.assertTrue(self.years().filter(name="y24").exists())

    @override_settings(SCHOOL_CORE_BATCH_CHUNK_SIZE=5)
    def test_chunk_size_comes_from_settings(self):
        names = [f"y{i}" for i in range(10)]
        names[1] = names[0]
        result = process_batch(names, self.make_year, key=lambda n: n, key_name="name")
        self.assertEqual(result.error_count, 5)
        self.assertEqual(result.success_count, 5)

    def test_whole_batch_first_error_rolls_back_everything(self):
        with self.assertRaises(ServiceValidationError):
            process_batch(
                ["y1", "y2", "bad", "y4"],
                self.make_year,
                key=lambda n: n,
                key_name="name",
                atomicity=Atomicity.WHOLE_BATCH,
            )
        self.assertFalse(self.years().exists())

    def test_whole_batch_integrity_error_becomes_conflict(self):
        with self.assertRaises(ConflictError):
            process_batch(
                ["y1", "y1"],
                self.make_year,
                key=lambda n: n,
                key_name="name",
                atomicity=Atomicity.WHOLE_BATCH,
            )
        self.assertFalse(self.years().exists())

    def test_empty_batch(self):
        result = process_batch([], self.make_year, key=lambda n: n, key_name="name")
        self.assertEqual((result.success_count, result.error_count), (0, 0))

    def test_items_must_be_a_list(self):
        with self.assertRaises(ServiceValidationError):
            process_batch("y1y2", self.make_year, key=lambda n: n, key_name="name")
        with self.assertRaises(ServiceValidationError):
            process_batch(42, self.make_year, key=lambda n: n, key_name="name")
        self.assertFalse(self.years().exists())


class MalformedEntryTests(TestCase):
    def setUp(self):
        self.world = make_world("alpha", students=11)

    def test_non_object_entry_in_second_chunk_is_reported(self):
        entries = [
            {
                "student_id": s.pk,
                "academic_year_id": self.world.year.pk,
                "class_id": self.world.class_a.pk,
            }
            for s in self.world.students
        ]
        entries.append("not-a-dict")

        result = bulk_create_enrollments(entries, self.world.admin)

        self.assertEqual(result.success_count, 11)
        self.assertEqual(
            result.errors,
            [{"student_id": None, "error": "Each entry must be an object", "code": "VALIDATION_ERROR"}],
        )
        self.assertEqual(Enrollment.objects.count(), 11)

    def test_non_object_result_and_attendance_entries(self):
        e1 = enroll(self.world, self.world.students[0])
        exam = make_exam(self.world)

        results = bulk_enter_results(
            exam.pk, [{"enrollment_id": e1.pk, "marks": 70}, 7], self.world.teacher
        )
        self.assertEqual(results.success_count, 1)
        self.assertEqual(results.errors[0]["code"], "VALIDATION_ERROR")
        self.assertIsNone(results.errors[0]["enrollment_id"])
        self.assertEqual(Result.objects.count(), 1)

        attendance = bulk_update_attendance(
            self.world.class_a.pk,
            self.world.term1.pk,
            "2025-03-03",
            [None, {"enrollment_id": e1.pk, "is_present": True}],
            self.world.teacher,
        )
        self.assertEqual((attendance.success_count, attendance.error_count), (1, 1))


def test_batch_result_counts():
    result = BatchResult(succeeded=[1, 2], errors=[{"id": 3, "error": "x", "code": "CONFLICT"}])
    assert result.success_count == 2
    assert result.error_count == 1


def test_invalid_chunk_size():
    with pytest.raises(ValueError):
        process_batch([1], lambda x: x, key=lambda x: x, key_name="id", chunk_size=-1)
