"""Shared setup for the school_core tests."""
import datetime
from decimal import Decimal
from types import SimpleNamespace

from ..context import ServiceContext
from ..models import (AcademicYear, Enrollment, EnrollmentStatus, Exam,
                      Invoice, InvoiceStatus, Role, School, SchoolClass,
                      Student, Term, User)


def context_for(user):
    return ServiceContext.for_user(user)


def platform_context(user_id=None):
    return ServiceContext(user_id=user_id, school_id=None, role=Role.SUPER_ADMIN)


def make_world(slug, students=3):
    """
    One school with a current year (two terms, two classes), a following
    year with one class, staff users for each role and a few students.
    """
    school = School.objects.create(name=slug.title(), slug=slug)
    year = AcademicYear.objects.create(
        school=school,
        name="2025",
        start_date=datetime.date(2025, 1, 1),
        end_date=datetime.date(2025, 12, 31),
        is_current=True,
    )
    school.current_academic_year = year
    school.save(update_fields=["current_academic_year"])
    next_year = AcademicYear.objects.create(
        school=school,
        name="2026",
        start_date=datetime.date(2026, 1, 1),
        end_date=datetime.date(2026, 12, 31),
    )
    term1 = Term.objects.create(
        school=school,
        academic_year=year,
        name="Term 1",
        start_date=datetime.date(2025, 1, 1),
        end_date=datetime.date(2025, 6, 30),
    )
    term2 = Term.objects.create(
        school=school,
        academic_year=year,
        name="Term 2",
        start_date=datetime.date(2025, 7, 1),
        end_date=datetime.date(2025, 12, 31),
    )
    class_a = SchoolClass.objects.create(school=school, academic_year=year, name="1A", grade="1")
    class_b = SchoolClass.objects.create(school=school, academic_year=year, name="1B", grade="1")
    next_class = SchoolClass.objects.create(
        school=school, academic_year=next_year, name="2A", grade="2"
    )

    users = {
        role: User.objects.create_user(
            username=f"{slug}_{role.lower()}", password="pw", role=role, school=school
        )
        for role in (Role.ADMIN, Role.TEACHER, Role.ACCOUNTANT, Role.PARENT, Role.STUDENT)
    }
    return SimpleNamespace(
        school=school,
        year=year,
        next_year=next_year,
        term1=term1,
        term2=term2,
        class_a=class_a,
        class_b=class_b,
        next_class=next_class,
        users=users,
        admin=context_for(users[Role.ADMIN]),
        teacher=context_for(users[Role.TEACHER]),
        accountant=context_for(users[Role.ACCOUNTANT]),
        parent=context_for(users[Role.PARENT]),
        students=[
            Student.objects.create(school=school, first_name=f"S{i}", last_name=slug)
            for i in range(1, students + 1)
        ],
    )


def enroll(world, student, school_class=None, status=EnrollmentStatus.ACTIVE, year=None):
    school_class = school_class or world.class_a
    return Enrollment.objects.create(
        school=world.school,
        student=student,
        academic_year=year or school_class.academic_year,
        school_class=school_class,
        status=status,
    )


def make_invoice(enrollment, term, amount="1000.00", due_date=None):
    amount = Decimal(amount)
    return Invoice.objects.create(
        school_id=enrollment.school_id,
        student_id=enrollment.student_id,
        enrollment=enrollment,
        term=term,
        amount=amount,
        paid_amount=Decimal("0.00"),
        balance=amount,
        status=InvoiceStatus.PENDING,
        due_date=due_date,
    )


def make_exam(world, max_marks=100, school_class=None):
    return Exam.objects.create(
        school=world.school,
        term=world.term1,
        school_class=school_class or world.class_a,
        name="Midterm",
        max_marks=max_marks,
    )
