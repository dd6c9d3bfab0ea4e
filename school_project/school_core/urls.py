from django.urls import path

from . import views

app_name = "school_core"

urlpatterns = [
    # ledger
    path("invoices/", views.invoice_list_view, name="invoice-list"),
    path("invoices/generate/", views.generate_invoices_view, name="invoice-generate"),
    path("invoices/<int:invoice_id>/", views.invoice_detail_view, name="invoice-detail"),
    path("invoices/<int:invoice_id>/payments/", views.apply_payment_view, name="invoice-pay"),
    path("invoices/<int:invoice_id>/status/", views.invoice_status_view, name="invoice-status"),
    path("finance/summary/", views.financial_summary_view, name="finance-summary"),
    path(
        "students/<int:student_id>/finance/",
        views.student_financial_summary_view,
        name="student-finance",
    ),
    # enrollments
    path("enrollments/", views.enrollment_list_view, name="enrollment-list"),
    path("enrollments/bulk/", views.bulk_enrollment_view, name="enrollment-bulk"),
    path("enrollments/promote/", views.promote_view, name="enrollment-promote"),
    path("enrollments/<int:enrollment_id>/", views.enrollment_detail_view, name="enrollment-detail"),
    path("enrollments/<int:enrollment_id>/transfer/", views.transfer_view, name="enrollment-transfer"),
    path("enrollments/<int:enrollment_id>/drop/", views.drop_view, name="enrollment-drop"),
    path("enrollments/<int:enrollment_id>/complete/", views.complete_view, name="enrollment-complete"),
    path(
        "enrollments/<int:enrollment_id>/reactivate/",
        views.reactivate_view,
        name="enrollment-reactivate",
    ),
    # academics / periods
    path("exams/<int:exam_id>/results/", views.bulk_results_view, name="exam-results"),
    path("exams/<int:exam_id>/statistics/", views.exam_statistics_view, name="exam-statistics"),
    path("results/<int:result_id>/", views.result_detail_view, name="result-detail"),
    path("students/<int:student_id>/results/", views.student_results_view, name="student-results"),
    path("classes/<int:class_id>/rankings/", views.class_rankings_view, name="class-rankings"),
    path(
        "classes/<int:class_id>/attendance-summary/",
        views.class_attendance_summary_view,
        name="class-attendance-summary",
    ),
    path("attendance/bulk/", views.bulk_attendance_view, name="attendance-bulk"),
    path(
        "attendance/<int:attendance_id>/", views.attendance_detail_view, name="attendance-detail"
    ),
    path(
        "academic-years/<int:academic_year_id>/",
        views.academic_year_detail_view,
        name="academic-year-detail",
    ),
    path(
        "academic-years/<int:academic_year_id>/set-current/",
        views.set_current_year_view,
        name="academic-year-set-current",
    ),
    path("terms/<int:term_id>/", views.term_detail_view, name="term-detail"),
    path("terms/<int:term_id>/lock/", views.term_lock_view, {"locked": True}, name="term-lock"),
    path("terms/<int:term_id>/unlock/", views.term_lock_view, {"locked": False}, name="term-unlock"),
]
