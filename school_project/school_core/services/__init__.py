from .academics import (bulk_enter_results, bulk_update_attendance,
                        calculate_exam_statistics, calculate_grade,
                        delete_attendance, delete_result,
                        generate_class_rankings,
                        get_class_attendance_summary, get_results_by_exam,
                        get_results_by_student, mark_attendance,
                        upsert_result)
from .authorization import (check_minimum_role, check_role,
                            check_role_assignment, check_tenant_access,
                            has_role, require_school_context)
from .batch import Atomicity, BatchResult, process_batch
from .enrollment import (bulk_create_enrollments, complete_enrollment,
                         create_enrollment, delete_enrollment, drop_enrollment,
                         get_enrollment, list_enrollments,
                         mark_previous_enrollments_completed,
                         promote_students, reactivate_enrollment,
                         transfer_student)
from .ledger import (apply_payment, delete_invoice, generate_invoices,
                     get_financial_summary, get_invoice,
                     get_student_financial_summary, list_invoices,
                     update_invoice_status)
from .periods import (create_academic_year, create_term,
                      delete_academic_year, delete_term,
                      get_current_academic_year, lock_term,
                      set_current_academic_year, unlock_term,
                      update_academic_year, update_term)
from .users import change_user_role, create_user
