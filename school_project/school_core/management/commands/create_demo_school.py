import datetime
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify

from school_core import services
from school_core.context import ServiceContext
from school_core.models import Role, School, SchoolClass, Student, User


class Command(BaseCommand):
    help = (
        "Create a demo school with an admin, an academic year, terms, classes, "
        "enrolled students and first-term invoices."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--school-name",  # Define flag
            default="Demo School",
            help="Name of the demo school to create.",
        )
        parser.add_argument(
            "--username", default="demo_admin", help="Username for the demo admin."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo admin."
        )
        parser.add_argument(
            "--students", type=int, default=12, help="Number of students to enroll."
        )
        parser.add_argument(
            "--fee", default="500.00", help="First-term fee per student."
        )

    def _unique_slug(self, name, max_tries=100):
        # "Demo School" -> "demo-school" -> "demo-school-1" ...
        base = slugify(name) or "school"
        slug = base
        i = 1
        while School.objects.filter(slug=slug).exists():
            slug = f"{base}-{i}"
            i += 1
            if i > max_tries:  # bail out with an error
                raise RuntimeError("Couldn't generate unique slug")
        return slug

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        school_name = options["school_name"]
        username = options["username"]
        student_count = options["students"]

        # 1. School + admin identity
        school = School.objects.create(name=school_name, slug=self._unique_slug(school_name))
        self.stdout.write(self.style.SUCCESS(f"Created school: {school} ({school.slug})"))

        admin, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com", "role": Role.ADMIN, "school": school},
        )
        if not created:
            # reuse the identity but move it onto the new school
            admin.school = school
            admin.role = Role.ADMIN
        admin.set_password(options["password"])
        admin.save()
        context = ServiceContext.for_user(admin)
        self.stdout.write(self.style.SUCCESS(f"Admin user: {admin.username}"))

        # 2. Current academic year with two terms
        today = datetime.date.today()
        start = datetime.date(today.year, 1, 1)
        end = datetime.date(today.year, 12, 31)
        year = services.create_academic_year(
            str(today.year), start, end, context, is_current=True
        )
        term1 = services.create_term(year.pk, "Term 1", start, datetime.date(today.year, 6, 30), context)
        services.create_term(year.pk, "Term 2", datetime.date(today.year, 7, 1), end, context)
        self.stdout.write(self.style.SUCCESS(f"Created academic year {year.name} with 2 terms"))

        # 3. Classes and students
        classes = [
            SchoolClass.objects.create(
                school=school, academic_year=year, name=f"Grade {grade}", grade=str(grade)
            )
            for grade in (1, 2)
        ]
        students = [
            Student.objects.create(
                school=school,
                first_name=f"Student{i}",
                last_name=school.slug.title(),
                admission_number=f"{school.slug[:3].upper()}-{i:04d}",
            )
            for i in range(1, student_count + 1)
        ]

        # 4. Enroll everyone (alternating classes) and bill term 1
        enrolled = services.bulk_create_enrollments(
            [
                {
                    "student_id": student.pk,
                    "academic_year_id": year.pk,
                    "class_id": classes[i % len(classes)].pk,
                }
                for i, student in enumerate(students)
            ],
            context,
        )
        self.stdout.write(
            self.style.SUCCESS(f"Enrolled {enrolled.success_count} student(s)")
        )

        invoices = services.generate_invoices(
            [e.pk for e in enrolled.succeeded], term1.pk, Decimal(options["fee"]), context
        )
        self.stdout.write(
            self.style.SUCCESS(f"Generated {invoices.success_count} invoice(s) for {term1.name}")
        )

        # 5. One partial payment so the ledger is not empty
        if invoices.succeeded:
            first = invoices.succeeded[0]
            services.apply_payment(
                first.pk, (first.amount / 2).quantize(Decimal("0.01")), context, method="cash"
            )
            self.stdout.write(self.style.SUCCESS(f"Applied demo payment to invoice {first.pk}"))

        self.stdout.write(self.style.SUCCESS("Demo school setup complete!"))
