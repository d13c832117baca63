"""Error taxonomy for the enrollment core.

Every error raised by the rating engine and the workflow derives from
`EnrollmentError` and carries the HTTP status and machine-readable code the
API layer uses when surfacing it. The core never retries any of these itself.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EnrollmentError(Exception):
    status_code: int = 500
    code: str = "enrollment_error"
    default_message: str = "The request could not be completed."

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidRequest(EnrollmentError):
    status_code = 400
    code = "invalid_request"
    default_message = "The request is malformed."


class RateNotConfigured(EnrollmentError):
    status_code = 422
    code = "quote_unavailable"
    default_message = "A quote is not available for this location and coverage."

    def __init__(self, area: int, coverage_type: str) -> None:
        super().__init__(
            f"No base rate configured for rating area {area} and coverage '{coverage_type}'.",
            details={"rating_area": area, "coverage_type": coverage_type},
        )
        self.area = area
        self.coverage_type = coverage_type


class Forbidden(EnrollmentError):
    # Denials are surfaced exactly like a missing resource so that existence is
    # never confirmed to an actor outside the tenant.
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class ApplicationNotFound(EnrollmentError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class CompanyNotFound(EnrollmentError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class MissingSignature(EnrollmentError):
    status_code = 400
    code = "missing_signature"
    default_message = "Signature is required"


class AlreadySubmitted(EnrollmentError):
    status_code = 409
    code = "already_submitted"
    default_message = "Application has already been signed and submitted"


class StaleApplication(EnrollmentError):
    status_code = 409
    code = "concurrent_update"
    default_message = "Application was modified concurrently, please retry"


class StorageUnavailable(EnrollmentError):
    status_code = 503
    code = "storage_unavailable"
    default_message = "Storage is temporarily unavailable"
