"""
Enrollment workflow: canonical steps, tenant authorization, progress tracking
and the audit trail.

Key rule:
- Application workflow state is mutated only through `ProgressController`.
"""

from .audit import AuditRecorder, to_csv
from .authorization import AuthorizationGuard, can_access, can_override_documents, is_global_admin
from .progress_controller import ProgressController
from .steps import CANONICAL_STEPS, first_incomplete_step

__all__ = [
    "AuditRecorder", "to_csv",
    "AuthorizationGuard", "can_access", "can_override_documents", "is_global_admin",
    "ProgressController",
    "CANONICAL_STEPS", "first_incomplete_step",
]
