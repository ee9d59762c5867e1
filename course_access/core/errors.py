"""Domain error taxonomy.

Every outcome a caller is expected to handle (missing course, payment
required, duplicate enrollment, ...) is a subclass of CourseAccessError.
Each carries a stable machine-readable ``code`` and a human ``message``;
the request layer maps the class to a transport status in one place
(course_access/api/errors.py).

Unpublished resources raise the *NotAvailable errors, but their public
body (``public_code`` and message) is identical to the matching
*NotFound error, so students cannot tell unpublished content from
missing content.  ``code`` stays distinct for logs and metrics.
Ownership denials for instructors read "not permitted" because the
instructor already knows the resource exists.
"""

from __future__ import annotations

from typing import Any


class CourseAccessError(Exception):
    code = "course_access_error"
    default_message = "Request could not be completed"
    public_code: str | None = None

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.public_code or self.code, "detail": self.message}


# --- NotFound ---


class NotFoundError(CourseAccessError):
    code = "not_found"
    default_message = "Not found"


class CourseNotFound(NotFoundError):
    code = "course_not_found"
    default_message = "Course not found"


class LessonNotFound(NotFoundError):
    code = "lesson_not_found"
    default_message = "Lesson not found"


class AssignmentNotFound(NotFoundError):
    code = "assignment_not_found"
    default_message = "Assignment not found"


class PaymentNotFound(NotFoundError):
    code = "payment_not_found"
    default_message = "Payment not found"


# --- NotAvailable (unpublished; rendered as "not found") ---


class NotAvailableError(CourseAccessError):
    code = "not_available"
    public_code = "not_found"
    default_message = "Not found"


class CourseNotAvailable(NotAvailableError):
    code = "course_not_available"
    public_code = CourseNotFound.code
    default_message = "Course not found"


class LessonNotAvailable(NotAvailableError):
    code = "lesson_not_available"
    public_code = LessonNotFound.code
    default_message = "Lesson not found"


class AssignmentNotAvailable(NotAvailableError):
    code = "assignment_not_available"
    public_code = AssignmentNotFound.code
    default_message = "Assignment not found"


# --- Enrollment state ---


class AlreadyEnrolled(CourseAccessError):
    code = "already_enrolled"
    default_message = "You are already enrolled in this course"


class NotEnrolled(CourseAccessError):
    code = "not_enrolled"
    default_message = "You are not enrolled in this course"


# --- Payment ---


class PaymentRequired(CourseAccessError):
    code = "payment_required"
    default_message = "This is a paid course. Please complete payment first."


class PaymentNotCompleted(PaymentRequired):
    code = "payment_not_completed"
    default_message = "Payment is not completed"


class PaymentMismatch(CourseAccessError):
    code = "payment_mismatch"
    default_message = "Payment does not match this student and course"


# --- Authorization ---


class PermissionDenied(CourseAccessError):
    code = "permission_denied"
    default_message = "You do not have permission to access this resource"


class AuthenticationRequired(CourseAccessError):
    code = "authentication_required"
    default_message = "Authentication required"
