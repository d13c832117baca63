"""
Real Postgres-backed store for production when USE_POSTGRES_STORE and DATABASE_URL are set.
Implements the same interface as benefits_enrollment.database.postgres (in-memory stub).
"""

from __future__ import annotations

import functools
import logging
import re
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, TypeVar

from sqlalchemy import create_engine, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from benefits_enrollment.contracts.interfaces import (
    Application,
    ApplicationStatus,
    ApplicationStore,
    AuditAction,
    AuditEntry,
    Company,
    EntityType,
    User,
    utcnow,
)
from benefits_enrollment.database import models
from benefits_enrollment.errors import StaleApplication, StorageUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONNECT_TIMEOUT_SECONDS = 5
STATEMENT_TIMEOUT_MS = 5000


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    return s


def _retry_once(fn: Callable[..., T]) -> Callable[..., T]:
    """Retry a store call once on a transient connection error."""

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except OperationalError as exc:
            logger.warning("Transient storage error in %s, retrying once: %s", fn.__name__, exc)
        try:
            return fn(self, *args, **kwargs)
        except OperationalError as exc:
            logger.error("Storage unavailable in %s: %s", fn.__name__, exc)
            raise StorageUnavailable() from exc

    return wrapper


class PostgresDB(ApplicationStore):
    """
    Postgres data access using SQLAlchemy. Use when DATABASE_URL is set and
    USE_POSTGRES_STORE=true.
    """

    def __init__(self, connection_string: str) -> None:
        connection_string = _normalize_connection_string(connection_string)
        engine_kwargs = {"pool_pre_ping": True}
        if connection_string.startswith("postgresql"):
            engine_kwargs.update(
                pool_size=5,
                max_overflow=10,
                pool_timeout=CONNECT_TIMEOUT_SECONDS,
                connect_args={
                    "connect_timeout": CONNECT_TIMEOUT_SECONDS,
                    "options": f"-c statement_timeout={STATEMENT_TIMEOUT_MS}",
                },
            )
        self.engine = create_engine(connection_string, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        models.Base.metadata.create_all(bind=self.engine)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return True
        except OperationalError:
            return False

    @contextmanager
    def _session(self) -> Iterator[Session]:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    # ------------------------------------------------------------------ #
    # Users
    # ------------------------------------------------------------------ #
    @_retry_once
    def create_user(self, username: str, role: str, broker_id: Optional[str] = None) -> User:
        with self._session() as s:
            u = models.User(username=username, role=role, broker_id=broker_id, created_at=utcnow())
            s.add(u)
            s.flush()
            s.refresh(u)
            return _to_user(u)

    @_retry_once
    def get_user(self, user_id: str) -> Optional[User]:
        with self._session() as s:
            u = s.get(models.User, str(user_id))
            return _to_user(u) if u else None

    @_retry_once
    def update_user_role(self, user_id: str, role: str) -> Optional[User]:
        with self._session() as s:
            u = s.get(models.User, str(user_id))
            if not u:
                return None
            u.role = role
            s.flush()
            return _to_user(u)

    # ------------------------------------------------------------------ #
    # Companies
    # ------------------------------------------------------------------ #
    @_retry_once
    def create_company(
        self, owner_user_id: str, name: str, broker_id: Optional[str] = None, zip_code: str = ""
    ) -> Company:
        with self._session() as s:
            c = models.Company(
                owner_user_id=owner_user_id, name=name, broker_id=broker_id, zip_code=zip_code, created_at=utcnow(),
            )
            s.add(c)
            s.flush()
            s.refresh(c)
            return _to_company(c)

    @_retry_once
    def get_company(self, company_id: str) -> Optional[Company]:
        with self._session() as s:
            c = s.get(models.Company, str(company_id))
            return _to_company(c) if c else None

    @_retry_once
    def list_companies_by_broker(self, broker_id: str) -> List[Company]:
        with self._session() as s:
            stmt = (
                select(models.Company)
                .where(models.Company.broker_id == broker_id)
                .order_by(models.Company.created_at.asc())
            )
            return [_to_company(c) for c in s.execute(stmt).scalars().all()]

    # ------------------------------------------------------------------ #
    # Applications
    # ------------------------------------------------------------------ #
    @_retry_once
    def create_application(self, company_id: str, current_step: str) -> Application:
        now = utcnow()
        try:
            with self._session() as s:
                a = models.Application(
                    company_id=company_id,
                    status=ApplicationStatus.NOT_STARTED.value,
                    current_step=current_step,
                    completed_steps=[],
                    version=0,
                    created_at=now,
                    updated_at=now,
                )
                s.add(a)
                s.flush()
                s.refresh(a)
                return _to_application(a)
        except IntegrityError:
            # Another writer created the company's application first
            existing = self.get_application_by_company(company_id)
            if existing is None:
                raise
            return existing

    @_retry_once
    def get_application(self, application_id: str) -> Optional[Application]:
        with self._session() as s:
            a = s.get(models.Application, str(application_id))
            return _to_application(a) if a else None

    @_retry_once
    def get_application_by_company(self, company_id: str) -> Optional[Application]:
        with self._session() as s:
            stmt = select(models.Application).where(models.Application.company_id == str(company_id))
            a = s.execute(stmt).scalar_one_or_none()
            return _to_application(a) if a else None

    @_retry_once
    def list_applications_by_broker(self, broker_id: str) -> List[Application]:
        with self._session() as s:
            stmt = (
                select(models.Application)
                .join(models.Company, models.Company.id == models.Application.company_id)
                .where(models.Company.broker_id == broker_id)
                .order_by(models.Application.created_at.asc())
            )
            return [_to_application(a) for a in s.execute(stmt).scalars().all()]

    @_retry_once
    def save_application(self, application: Application, expected_version: int) -> Application:
        with self._session() as s:
            stmt = (
                update(models.Application)
                .where(
                    models.Application.id == application.id,
                    models.Application.version == expected_version,
                )
                .values(
                    status=application.status.value,
                    current_step=application.current_step,
                    completed_steps=list(application.completed_steps),
                    signature=application.signature,
                    submitted_at=application.submitted_at,
                    version=expected_version + 1,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            result = s.execute(stmt)
            if result.rowcount != 1:
                raise StaleApplication()
            a = s.get(models.Application, application.id, populate_existing=True)
            return _to_application(a)

    # ------------------------------------------------------------------ #
    # Audit
    # ------------------------------------------------------------------ #
    @_retry_once
    def append_audit_entry(self, entry: AuditEntry) -> None:
        with self._session() as s:
            s.add(
                models.AuditLog(
                    user_id=entry.actor_user_id,
                    action=entry.action.value,
                    entity_type=entry.entity_type.value,
                    entity_id=entry.entity_id,
                    details=entry.details,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    timestamp=entry.timestamp,
                )
            )

    @_retry_once
    def list_audit_entries(self, limit: Optional[int] = None) -> List[AuditEntry]:
        with self._session() as s:
            stmt = select(models.AuditLog).order_by(models.AuditLog.timestamp.desc(), models.AuditLog.id.desc())
            if limit:
                stmt = stmt.limit(limit)
            return [_to_audit_entry(row) for row in s.execute(stmt).scalars().all()]


def _to_user(u: models.User) -> User:
    return User(id=u.id, username=u.username, role=u.role, broker_id=u.broker_id, created_at=u.created_at)


def _to_company(c: models.Company) -> Company:
    return Company(
        id=c.id,
        owner_user_id=c.owner_user_id,
        name=c.name,
        broker_id=c.broker_id,
        zip_code=c.zip_code,
        created_at=c.created_at,
    )


def _to_application(a: models.Application) -> Application:
    return Application(
        id=a.id,
        company_id=a.company_id,
        current_step=a.current_step,
        completed_steps=list(a.completed_steps or []),
        status=ApplicationStatus(a.status),
        signature=a.signature,
        submitted_at=a.submitted_at,
        version=a.version,
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


def _to_audit_entry(row: models.AuditLog) -> AuditEntry:
    return AuditEntry(
        actor_user_id=row.user_id,
        action=AuditAction(row.action),
        entity_type=EntityType(row.entity_type),
        entity_id=row.entity_id,
        details=row.details or "",
        timestamp=row.timestamp,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )
