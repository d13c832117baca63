"""
Lightweight in-memory store replacement for local development and tests.

This implements the full `ApplicationStore` interface so the API and the
workflow can run without a real database. It is NOT intended for production
use. Records are copied on the way in and out so callers never share mutable
state with the store.
"""

from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import replace
from typing import Dict, List, Optional

from benefits_enrollment.contracts.interfaces import (
    Application,
    ApplicationStatus,
    ApplicationStore,
    AuditEntry,
    Company,
    User,
    utcnow,
)
from benefits_enrollment.errors import StaleApplication


class PostgresDB(ApplicationStore):
    """
    In-memory stand-in for the Postgres-backed data access layer.
    """

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._companies: Dict[str, Company] = {}
        self._applications: Dict[str, Application] = {}
        self._application_by_company: Dict[str, str] = {}
        self._audit: List[AuditEntry] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Schema / lifecycle
    # ------------------------------------------------------------------ #
    def create_tables(self) -> None:
        """
        No-op for the in-memory implementation. Kept for compatibility
        with the startup hook in `benefits_enrollment/api/main.py`.
        """
        return None

    def ping(self) -> bool:
        return True

    # ------------------------------------------------------------------ #
    # Users
    # ------------------------------------------------------------------ #
    def create_user(self, username: str, role: str, broker_id: Optional[str] = None) -> User:
        user = User(id=str(uuid.uuid4()), username=username, role=role, broker_id=broker_id)
        with self._lock:
            self._users[user.id] = user
        return copy.copy(user)

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(str(user_id))
        return copy.copy(user) if user else None

    def update_user_role(self, user_id: str, role: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(str(user_id))
            if not user:
                return None
            user.role = role
            return copy.copy(user)

    # ------------------------------------------------------------------ #
    # Companies
    # ------------------------------------------------------------------ #
    def create_company(
        self, owner_user_id: str, name: str, broker_id: Optional[str] = None, zip_code: str = ""
    ) -> Company:
        company = Company(
            id=str(uuid.uuid4()), owner_user_id=owner_user_id, name=name, broker_id=broker_id, zip_code=zip_code,
        )
        with self._lock:
            self._companies[company.id] = company
        return copy.copy(company)

    def get_company(self, company_id: str) -> Optional[Company]:
        with self._lock:
            company = self._companies.get(str(company_id))
        return copy.copy(company) if company else None

    def list_companies_by_broker(self, broker_id: str) -> List[Company]:
        with self._lock:
            companies = [c for c in self._companies.values() if c.broker_id == broker_id]
        companies.sort(key=lambda c: c.created_at)
        return [copy.copy(c) for c in companies]

    # ------------------------------------------------------------------ #
    # Applications
    # ------------------------------------------------------------------ #
    def create_application(self, company_id: str, current_step: str) -> Application:
        with self._lock:
            existing_id = self._application_by_company.get(company_id)
            if existing_id:
                return copy.deepcopy(self._applications[existing_id])
            app = Application(
                id=str(uuid.uuid4()),
                company_id=company_id,
                current_step=current_step,
                status=ApplicationStatus.NOT_STARTED,
            )
            self._applications[app.id] = app
            self._application_by_company[company_id] = app.id
            return copy.deepcopy(app)

    def get_application(self, application_id: str) -> Optional[Application]:
        with self._lock:
            app = self._applications.get(str(application_id))
            return copy.deepcopy(app) if app else None

    def get_application_by_company(self, company_id: str) -> Optional[Application]:
        with self._lock:
            app_id = self._application_by_company.get(str(company_id))
            return copy.deepcopy(self._applications[app_id]) if app_id else None

    def list_applications_by_broker(self, broker_id: str) -> List[Application]:
        with self._lock:
            company_ids = {c.id for c in self._companies.values() if c.broker_id == broker_id}
            apps = [copy.deepcopy(a) for a in self._applications.values() if a.company_id in company_ids]
        apps.sort(key=lambda a: a.created_at)
        return apps

    def save_application(self, application: Application, expected_version: int) -> Application:
        with self._lock:
            stored = self._applications.get(application.id)
            if stored is None or stored.version != expected_version:
                raise StaleApplication()
            saved = replace(
                copy.deepcopy(application),
                version=expected_version + 1,
                updated_at=utcnow(),
            )
            self._applications[saved.id] = saved
            return copy.deepcopy(saved)

    # ------------------------------------------------------------------ #
    # Audit
    # ------------------------------------------------------------------ #
    def append_audit_entry(self, entry: AuditEntry) -> None:
        with self._lock:
            self._audit.append(entry)

    def list_audit_entries(self, limit: Optional[int] = None) -> List[AuditEntry]:
        with self._lock:
            entries = list(reversed(self._audit))
        return entries[:limit] if limit else entries
