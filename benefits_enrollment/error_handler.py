"""Error handling helpers for the enrollment API."""
from typing import Any, Dict
import logging

from benefits_enrollment.errors import EnrollmentError, Forbidden, RateNotConfigured

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_enrollment_error(self, exc: EnrollmentError, context: Dict[str, Any] = None) -> Dict[str, Any]:
        if isinstance(exc, RateNotConfigured):
            logger.warning("Quote unavailable: %s context=%s", exc.message, context or {})
        elif isinstance(exc, Forbidden):
            logger.warning("Access denied surfaced to caller: context=%s", context or {})
        return exc.to_dict()

    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        logger.error("Unhandled exception in enrollment request: %s", exc, exc_info=True)
        return {
            "code": "internal_error",
            "message": "An internal error occurred while processing your request. Please try again later.",
            "metadata": {"error": str(exc), "context": context or {}},
        }
