from decimal import Decimal

import django.contrib.auth.validators
import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import school_core.managers


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="School",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("SUSPENDED", "Suspended")], default="ACTIVE", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("role", models.CharField(choices=[("SUPER_ADMIN", "Super admin"), ("ADMIN", "Admin"), ("TEACHER", "Teacher"), ("ACCOUNTANT", "Accountant"), ("PARENT", "Parent"), ("STUDENT", "Student")], default="STUDENT", max_length=20)),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
                ("school", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="users", to="school_core.school")),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "abstract": False,
                "indexes": [models.Index(fields=["school", "role"], name="school_core_school__0f7d2c_idx")],
            },
            managers=[
                ("objects", school_core.managers.SchoolUserManager()),
            ],
        ),
        migrations.CreateModel(
            name="Student",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=100)),
                ("last_name", models.CharField(max_length=100)),
                ("admission_number", models.CharField(blank=True, max_length=64, null=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="students", to="school_core.school")),
            ],
            options={
                "indexes": [models.Index(fields=["school", "last_name"], name="school_core_school__5b1e8a_idx")],
            },
        ),
        migrations.CreateModel(
            name="AcademicYear",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("is_current", models.BooleanField(default=False)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("COMPLETED", "Completed"), ("ARCHIVED", "Archived")], default="ACTIVE", max_length=10)),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="academic_years", to="school_core.school")),
            ],
            options={
                "ordering": ("school", "start_date"),
                "constraints": [
                    models.UniqueConstraint(fields=("school", "name"), name="uq_school_academic_year_name"),
                    models.UniqueConstraint(condition=models.Q(("is_current", True)), fields=("school",), name="uq_school_current_academic_year"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Term",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("is_locked", models.BooleanField(default=False)),
                ("academic_year", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="terms", to="school_core.academicyear")),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="terms", to="school_core.school")),
            ],
            options={
                "ordering": ("school", "start_date"),
                "constraints": [
                    models.UniqueConstraint(fields=("academic_year", "name"), name="uq_academic_year_term_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SchoolClass",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("grade", models.CharField(max_length=20)),
                ("stream", models.CharField(blank=True, default="", max_length=20)),
                ("academic_year", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="classes", to="school_core.academicyear")),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="classes", to="school_core.school")),
            ],
            options={
                "verbose_name_plural": "classes",
                "indexes": [models.Index(fields=["school", "academic_year"], name="school_core_school__a4c9d3_idx")],
            },
        ),
        migrations.CreateModel(
            name="Exam",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("max_marks", models.PositiveIntegerField()),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="exams", to="school_core.school")),
                ("school_class", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="exams", to="school_core.schoolclass")),
                ("term", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="exams", to="school_core.term")),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("max_marks__gt", 0)), name="ck_exam_max_marks_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Enrollment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("COMPLETE", "Complete"), ("DROPPED", "Dropped")], default="ACTIVE", max_length=10)),
                ("enrollment_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("completion_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("academic_year", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="enrollments", to="school_core.academicyear")),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="enrollments", to="school_core.school")),
                ("school_class", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="enrollments", to="school_core.schoolclass")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="enrollments", to="school_core.student")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["school", "status"], name="school_core_school__e2b7f1_idx"),
                    models.Index(fields=["school", "school_class"], name="school_core_school__9d3a60_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("student", "academic_year"), name="uq_enrollment_student_year"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("paid_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("balance", models.DecimalField(decimal_places=2, max_digits=18)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("PARTIAL", "Partially paid"), ("PAID", "Paid"), ("OVERDUE", "Overdue"), ("CANCELLED", "Cancelled")], default="PENDING", max_length=10)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("enrollment", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="school_core.enrollment")),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="school_core.school")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="school_core.student")),
                ("term", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="school_core.term")),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["school", "status"], name="school_core_school__41c8e5_idx"),
                    models.Index(fields=["school", "term"], name="school_core_school__c07b19_idx"),
                    models.Index(fields=["school", "student"], name="school_core_school__7ea2d4_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("enrollment", "term"), name="uq_invoice_enrollment_term"),
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="ck_invoice_amount_positive"),
                    models.CheckConstraint(condition=models.Q(("paid_amount__gte", 0)), name="ck_invoice_paid_non_negative"),
                    models.CheckConstraint(condition=models.Q(("balance__gte", 0)), name="ck_invoice_balance_non_negative"),
                    models.CheckConstraint(condition=models.Q(balance=models.F("amount") - models.F("paid_amount")), name="ck_invoice_balance_matches"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("method", models.CharField(blank=True, max_length=50, null=True)),
                ("reference", models.CharField(blank=True, max_length=100, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("payment_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="school_core.invoice")),
                ("recorded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="school_core.school")),
            ],
            options={
                "ordering": ("-payment_date",),
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="ck_payment_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Result",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("marks", models.DecimalField(decimal_places=2, max_digits=7)),
                ("grade", models.CharField(blank=True, default="", max_length=5)),
                ("remarks", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("enrollment", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="results", to="school_core.enrollment")),
                ("exam", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="results", to="school_core.exam")),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="results", to="school_core.school")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="results", to="school_core.student")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("enrollment", "exam"), name="uq_result_enrollment_exam"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Attendance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("is_present", models.BooleanField()),
                ("remarks", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("enrollment", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="attendances", to="school_core.enrollment")),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="attendances", to="school_core.school")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="attendances", to="school_core.student")),
                ("term", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="attendances", to="school_core.term")),
            ],
            options={
                "verbose_name_plural": "attendance",
                "indexes": [models.Index(fields=["school", "date"], name="school_core_school__3f61b2_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("enrollment", "date"), name="uq_attendance_enrollment_date"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("entity_kind", models.CharField(max_length=100)),
                ("entity_id", models.CharField(max_length=100)),
                ("before", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("after", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("metadata", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("school", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="audit_logs", to="school_core.school")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["school", "user"], name="school_core_school__b85e07_idx"),
                    models.Index(fields=["school", "created_at"], name="school_core_school__6ad4c2_idx"),
                    models.Index(fields=["entity_kind", "entity_id"], name="school_core_entity__1c9f4e_idx"),
                ],
            },
        ),
        # School <-> AcademicYear is circular, so the pointer is added last
        migrations.AddField(
            model_name="school",
            name="current_academic_year",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="school_core.academicyear"),
        ),
    ]
