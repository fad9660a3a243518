"""
Exception hierarchy for the check-in service.
Every error carries the HTTP status the API layer answers with.
"""

from typing import Optional


class CheckinServiceError(Exception):
    """Base exception for all check-in service errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str = "CHECKIN_ERROR",
        details: Optional[dict] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ===========================================
# Client errors
# ===========================================


class MissingField(CheckinServiceError):
    """A required request field is absent or blank."""

    status_code = 400

    def __init__(self, *fields: str):
        self.fields = fields
        names = " and ".join(fields)
        super().__init__(
            message=f"{names} {'is' if len(fields) == 1 else 'are'} required",
            error_code="MISSING_FIELD",
            details={"fields": list(fields)},
        )


class Unauthorized(CheckinServiceError):
    status_code = 401

    def __init__(self, message: str = "Invalid staff password"):
        super().__init__(message=message, error_code="UNAUTHORIZED")


class InvalidToken(CheckinServiceError):
    """Check-in token could not be decoded."""

    status_code = 400

    def __init__(self, reason: str = "malformed token"):
        self.reason = reason
        super().__init__(
            message="Invalid QR code",
            error_code="INVALID_TOKEN",
            details={"reason": reason},
        )


class NotFound(CheckinServiceError):
    status_code = 404

    def __init__(self, email: str):
        self.email = email
        super().__init__(
            message=f"No registration found for {email}",
            error_code="NOT_FOUND",
            details={"email": email},
        )


class InvalidCode(CheckinServiceError):
    """OTP absent, expired or mismatched."""

    status_code = 400

    def __init__(self):
        super().__init__(message="Invalid OTP", error_code="INVALID_CODE")


# ===========================================
# Collaborator failures
# ===========================================


class StoreUnavailable(CheckinServiceError):
    """The row store could not be read or written."""

    status_code = 500

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(
            message=f"Row store unavailable during {operation}",
            error_code="STORE_UNAVAILABLE",
            details={"operation": operation, "cause": str(cause) if cause else None},
        )


class DeliveryFailed(CheckinServiceError):
    """Email delivery failed."""

    status_code = 500

    def __init__(self, recipient: str, cause: Optional[Exception] = None):
        self.recipient = recipient
        self.cause = cause
        super().__init__(
            message=f"Failed to deliver email to {recipient}",
            error_code="DELIVERY_FAILED",
            details={"cause": str(cause) if cause else None},
        )
