from .academic import AcademicYear, Exam, SchoolClass, Student, Term
from .auditlog import AuditLog
from .enrollment import Enrollment, EnrollmentStatus
from .invoice import Invoice, InvoiceStatus, Payment, derive_invoice_status
from .records import Attendance, Result
from .school import Role, School, User
