"""
Progress controller: the only writer of application workflow state.

Every transition re-reads the application, checks tenant access, applies the
change and saves it with an optimistic version check. Calls on the same
application are serialized in-process by a striped lock; a write that
still loses the version race (another process got there first) is retried once
against the fresh record.
"""

from __future__ import annotations

import logging
import threading
import zlib
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from benefits_enrollment.contracts.interfaces import (
    Actor,
    Application,
    ApplicationStatus,
    ApplicationStore,
    AuditAction,
    Company,
    EntityType,
    RequestContext,
    utcnow,
)
from benefits_enrollment.errors import (
    AlreadySubmitted,
    ApplicationNotFound,
    CompanyNotFound,
    InvalidRequest,
    MissingSignature,
    StaleApplication,
)
from benefits_enrollment.workflow.audit import AuditRecorder
from benefits_enrollment.workflow.authorization import AuthorizationGuard, scope_of
from benefits_enrollment.workflow.steps import REVIEW, first_incomplete_step, is_known_step

logger = logging.getLogger(__name__)

Mutation = Callable[[Application], Optional[Application]]

LOCK_STRIPES = 64


class ProgressController:
    def __init__(
        self,
        store: ApplicationStore,
        audit: Optional[AuditRecorder] = None,
        guard: Optional[AuthorizationGuard] = None,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: int = 2,
    ) -> None:
        self.store = store
        self.audit = audit or AuditRecorder(store)
        self.guard = guard or AuthorizationGuard()
        self.clock = clock
        self.max_attempts = max_attempts
        # Fixed pool of locks; keys hash onto a stripe so the pool never grows
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(LOCK_STRIPES)]

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def get_application(self, application_id: str, actor: Actor) -> Application:
        application = self._load_application(application_id)
        self._authorize(actor, application)
        return application

    def get_application_for_company(self, company_id: str, actor: Actor) -> Application:
        company = self._load_company(company_id)
        self.guard.require_company_access(actor, company)
        application = self.store.get_application_by_company(company_id)
        if application is None:
            raise ApplicationNotFound()
        return application

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #
    def create_company(
        self,
        actor: Actor,
        name: str,
        zip_code: str = "",
        context: Optional[RequestContext] = None,
    ) -> Tuple[Company, Application]:
        """Create a company owned by the actor together with its application."""
        if not (name or "").strip():
            raise InvalidRequest("Company name is required.")
        company = self.store.create_company(
            owner_user_id=actor.id, name=name.strip(), broker_id=actor.broker_id, zip_code=zip_code,
        )
        with self._lock_for(f"company:{company.id}"):
            application = self._ensure_application(company, actor, context)
        return company, application

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #
    def advance(
        self,
        application_id: str,
        step: str,
        actor: Actor,
        context: Optional[RequestContext] = None,
    ) -> Application:
        """Mark `step` completed. Completing an already-completed step is a no-op."""
        self._check_step(step)
        with self._lock_for(application_id):
            application, changed = self._update(application_id, actor, lambda app: self._complete_step(app, step))
            if changed:
                logger.info(
                    "[Workflow] application=%s step=%s completed by actor=%s current_step=%s",
                    application.id, step, actor.id, application.current_step,
                )
                self.audit.log(
                    actor,
                    AuditAction.APPLICATION_UPDATE,
                    EntityType.APPLICATION,
                    application.id,
                    f"Step '{step}' completed on application {application.id}",
                    context,
                )
        return application

    def advance_for_company(
        self,
        company_id: str,
        step: str,
        actor: Actor,
        context: Optional[RequestContext] = None,
    ) -> Application:
        """Advance the company's application, creating it on first write."""
        self._check_step(step)
        company = self._load_company(company_id)
        self.guard.require_company_access(actor, company)
        with self._lock_for(f"company:{company_id}"):
            application = self._ensure_application(company, actor, context)
        return self.advance(application.id, step, actor, context)

    def submit(
        self,
        application_id: str,
        signature: str,
        actor: Actor,
        context: Optional[RequestContext] = None,
    ) -> Application:
        """Sign and submit. One-way: any later call raises `AlreadySubmitted`."""
        with self._lock_for(application_id):
            application, _ = self._update(application_id, actor, lambda app: self._sign(app, signature))
            logger.info("[Workflow] application=%s signed and submitted by actor=%s", application.id, actor.id)
            self.audit.log(
                actor,
                AuditAction.APPLICATION_SIGN,
                EntityType.APPLICATION,
                application.id,
                f"Application {application.id} signed and submitted by {actor.id}",
                context,
            )
        return application

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _update(self, application_id: str, actor: Actor, mutate: Mutation) -> Tuple[Application, bool]:
        for attempt in range(1, self.max_attempts + 1):
            current = self._load_application(application_id)
            self._authorize(actor, current)
            updated = mutate(current)
            if updated is None:
                return current, False
            try:
                return self.store.save_application(updated, expected_version=current.version), True
            except StaleApplication:
                if attempt >= self.max_attempts:
                    raise
                logger.info("[Workflow] stale write on application=%s, retrying with fresh state", application_id)
        raise StaleApplication()

    def _complete_step(self, application: Application, step: str) -> Optional[Application]:
        if step in application.completed_steps:
            return None
        if application.status == ApplicationStatus.SUBMITTED:
            raise AlreadySubmitted()
        completed = [*application.completed_steps, step]
        return replace(
            application,
            completed_steps=completed,
            current_step=first_incomplete_step(completed),
            status=ApplicationStatus.IN_PROGRESS,
            updated_at=self.clock(),
        )

    def _sign(self, application: Application, signature: str) -> Application:
        if application.status == ApplicationStatus.SUBMITTED:
            raise AlreadySubmitted()
        if not isinstance(signature, str) or not signature.strip():
            raise MissingSignature()
        now = self.clock()
        completed = list(application.completed_steps)
        if REVIEW not in completed:
            completed.append(REVIEW)
        return replace(
            application,
            signature=signature,
            status=ApplicationStatus.SUBMITTED,
            submitted_at=now,
            current_step=REVIEW,
            completed_steps=completed,
            updated_at=now,
        )

    def _ensure_application(self, company: Company, actor: Actor, context: Optional[RequestContext]) -> Application:
        application = self.store.get_application_by_company(company.id)
        if application is not None:
            return application
        application = self.store.create_application(company.id, current_step=first_incomplete_step([]))
        logger.info("[Workflow] application=%s created for company=%s", application.id, company.id)
        self.audit.log(
            actor,
            AuditAction.APPLICATION_CREATE,
            EntityType.APPLICATION,
            application.id,
            f"Application {application.id} created for company {company.id}",
            context,
        )
        return application

    def _authorize(self, actor: Actor, application: Application) -> None:
        company = self._load_company(application.company_id)
        self.guard.require_access(actor, scope_of(company), entity_type="application", entity_id=application.id)

    def _load_application(self, application_id: str) -> Application:
        application = self.store.get_application(application_id)
        if application is None:
            raise ApplicationNotFound()
        return application

    def _load_company(self, company_id: str) -> Company:
        company = self.store.get_company(company_id)
        if company is None:
            raise CompanyNotFound()
        return company

    @staticmethod
    def _check_step(step: str) -> None:
        if not is_known_step(step):
            raise InvalidRequest(f"Unknown enrollment step '{step}'.")
        if step == REVIEW:
            raise InvalidRequest("The review step is completed by signing the application.")

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[zlib.crc32(key.encode("utf-8")) % len(self._locks)]
