import json
from decimal import Decimal

import pytest
from django.test import RequestFactory, TestCase

from ..exceptions import NotFoundError
from ..models import Enrollment, EnrollmentStatus, Invoice, Payment, Role
from ..services import (apply_payment, delete_invoice, drop_enrollment,
                        get_enrollment, get_invoice, list_invoices,
                        transfer_student, update_invoice_status)
from ..views import invoice_list_view
from .utils import context_for, enroll, make_invoice, make_world, platform_context


class TenantIsolationManagerTests(TestCase):
    def setUp(self):
        self.a = make_world("alpha", students=1)
        self.b = make_world("beta", students=1)
        self.enr_a = enroll(self.a, self.a.students[0])
        self.enr_b = enroll(self.b, self.b.students[0])
        # create one invoice per school
        self.inv_a = make_invoice(self.enr_a, self.a.term1, "200.00")
        self.inv_b = make_invoice(self.enr_b, self.b.term1, "100.00")

    def test_for_school_returns_only_that_school_objects(self):
        self.assertListEqual(
            list(
                Invoice.objects.for_school(self.a.school.pk)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_a.pk],
        )

    def test_visible_to_filters_in_query(self):
        with self.assertRaises(Invoice.DoesNotExist):
            Invoice.objects.visible_to(self.a.accountant).get(pk=self.inv_b.pk)

    def test_platform_without_school_sees_every_tenant(self):
        pks = set(Invoice.objects.visible_to(platform_context()).values_list("pk", flat=True))
        self.assertEqual(pks, {self.inv_a.pk, self.inv_b.pk})

    def test_foreign_invoice_is_not_found_for_every_operation(self):
        ctx = self.a.accountant
        with self.assertRaises(NotFoundError):
            get_invoice(self.inv_b.pk, ctx)
        with self.assertRaises(NotFoundError):
            apply_payment(self.inv_b.pk, "10.00", ctx)
        with self.assertRaises(NotFoundError):
            update_invoice_status(self.inv_b.pk, "CANCELLED", ctx)
        with self.assertRaises(NotFoundError):
            delete_invoice(self.inv_b.pk, self.a.admin)

        # nothing changed on the other side
        self.inv_b.refresh_from_db()
        self.assertEqual(self.inv_b.balance, Decimal("100.00"))
        self.assertEqual(self.inv_b.status, "PENDING")
        self.assertFalse(Payment.objects.exists())

    def test_foreign_enrollment_is_not_found(self):
        with self.assertRaises(NotFoundError):
            get_enrollment(self.enr_b.pk, self.a.teacher)
        with self.assertRaises(NotFoundError):
            drop_enrollment(self.enr_b.pk, self.a.admin)
        with self.assertRaises(NotFoundError):
            transfer_student(self.enr_a.pk, self.b.class_a.pk, self.a.admin)
        self.assertEqual(
            Enrollment.objects.get(pk=self.enr_b.pk).status, EnrollmentStatus.ACTIVE
        )

    def test_platform_admin_can_pay_any_school(self):
        superuser = platform_context(user_id=None)
        _, inv = apply_payment(self.inv_b.pk, "100.00", superuser)
        self.assertEqual(inv.status, "PAID")
        self.assertEqual(Payment.objects.get().school_id, self.b.school.pk)

    def test_list_is_scoped(self):
        invoices, total = list_invoices(self.a.accountant)
        self.assertEqual(total, 1)
        self.assertEqual(invoices[0].pk, self.inv_a.pk)


@pytest.mark.django_db
def test_invoice_list_returns_only_tenant_data():
    a = make_world("alpha", students=1)
    b = make_world("beta", students=1)
    inv_a = make_invoice(enroll(a, a.students[0]), a.term1, "100.00")
    make_invoice(enroll(b, b.students[0]), b.term1, "200.00")

    # Bypass client & call view with a RequestFactory
    request = RequestFactory().get("/api/invoices/")
    request.user = a.users[Role.ACCOUNTANT]
    # attach context before hitting view (manually simulate middleware)
    request.service_context = context_for(request.user)

    response = invoice_list_view(request)
    data = json.loads(response.content)

    assert data["success"] is True
    assert [row["id"] for row in data["data"]["invoices"]] == [inv_a.pk]
    assert data["data"]["total"] == 1
