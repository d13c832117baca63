from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CoverageType(str, Enum):
    MEDICAL = "medical"
    DENTAL = "dental"
    VISION = "vision"
    LIFE = "life"


class MetalTier(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"


class ApplicationStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class Role(str, Enum):
    EMPLOYER = "employer"
    ADMIN = "admin"
    MASTER_ADMIN = "master_admin"
    BROKER_ADMIN = "broker_admin"
    BROKER_STAFF = "broker_staff"
    OWNER = "owner"
    STAFF = "staff"


class AuditAction(str, Enum):
    # User actions
    LOGIN = "login"
    LOGOUT = "logout"
    PASSWORD_CHANGE = "password_change"

    # Application actions
    APPLICATION_CREATE = "application_create"
    APPLICATION_UPDATE = "application_update"
    APPLICATION_SUBMIT = "application_submit"
    APPLICATION_SIGN = "application_sign"
    DOCUMENT_OVERRIDE = "document_override"

    # Admin actions
    ADMIN_LOGIN = "admin_login"
    ADMIN_PLAN_UPLOAD = "admin_plan_upload"
    ADMIN_PLAN_DELETE = "admin_plan_delete"
    ADMIN_USER_CREATE = "admin_user_create"
    ADMIN_USER_UPDATE = "admin_user_update"
    ADMIN_IP_BLOCK = "admin_ip_block"
    ADMIN_IP_UNBLOCK = "admin_ip_unblock"


class EntityType(str, Enum):
    USER = "user"
    APPLICATION = "application"
    COMPANY = "company"
    PLAN = "plan"
    DOCUMENT = "document"
    SIGNATURE = "signature"
    IP_ADDRESS = "ip_address"


# ---------------------------------------------------------------------------
# Rating data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Address:
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


@dataclass(frozen=True)
class Person:
    first_name: str
    last_name: str
    date_of_birth: date
    relationship: str = "employee"       # employee / spouse / child
    address: Optional[Address] = None


@dataclass(frozen=True)
class QuoteRequest:
    zip_code: str
    effective_date: date
    people: List[Person]
    coverage_types: List[CoverageType]


@dataclass(frozen=True)
class CensusSummary:
    average_age: float
    member_count: int


@dataclass(frozen=True)
class QuoteOffer:
    carrier_id: str
    plan_label: str
    coverage_type: CoverageType
    metal_tier: Optional[MetalTier]      # medical only
    monthly_premium: int                 # cents
    deductible: int                      # cents
    out_of_pocket_max: int               # cents
    network: str
    rating_area: int


# ---------------------------------------------------------------------------
# Workflow data models
# ---------------------------------------------------------------------------

@dataclass
class User:
    id: str
    username: str
    role: str = Role.EMPLOYER.value
    broker_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Company:
    id: str
    owner_user_id: str
    name: str
    broker_id: Optional[str] = None
    zip_code: str = ""
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Application:
    id: str
    company_id: str
    current_step: str
    completed_steps: List[str] = field(default_factory=list)
    status: ApplicationStatus = ApplicationStatus.NOT_STARTED
    signature: Optional[str] = None
    submitted_at: Optional[datetime] = None
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "current_step": self.current_step,
            "completed_steps": list(self.completed_steps),
            "status": self.status.value,
            "signed": bool(self.signature),
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as resolved by the identity collaborator."""
    id: str
    role: str
    broker_id: Optional[str] = None


@dataclass(frozen=True)
class ResourceScope:
    """Ownership of a company-scoped resource."""
    owner_user_id: str
    broker_id: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class AuditEntry:
    actor_user_id: str
    action: AuditAction
    entity_type: EntityType
    entity_id: Optional[str]
    details: str
    timestamp: datetime = field(default_factory=utcnow)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


# ---------------------------------------------------------------------------
# Cache interface
# ---------------------------------------------------------------------------

class CacheBackend(Protocol):
    """Key/value cache with per-entry TTL (in-memory or redis)."""

    def set(self, key: str, data: Dict[str, Any], ttl: int) -> None: ...

    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def delete(self, key: str) -> None: ...

    def ping(self) -> bool: ...


# ---------------------------------------------------------------------------
# Abstract persistence interface
# ---------------------------------------------------------------------------

class ApplicationStore(ABC):
    """Every persistence backend must implement this interface.

    Implementations provide read-after-write consistency for a single record
    and raise `StorageUnavailable` for transport failures.
    """

    def create_tables(self) -> None:
        """Create the schema if the backend needs one."""

    def ping(self) -> bool:
        return True

    # -- Users --

    @abstractmethod
    def create_user(self, username: str, role: str, broker_id: Optional[str] = None) -> User:
        """Register a user."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        """Fetch a user by ID."""

    @abstractmethod
    def update_user_role(self, user_id: str, role: str) -> Optional[User]:
        """Change a user's role."""

    # -- Companies --

    @abstractmethod
    def create_company(
        self, owner_user_id: str, name: str, broker_id: Optional[str] = None, zip_code: str = ""
    ) -> Company:
        """Create a company record."""

    @abstractmethod
    def get_company(self, company_id: str) -> Optional[Company]:
        """Fetch a company by ID."""

    @abstractmethod
    def list_companies_by_broker(self, broker_id: str) -> List[Company]:
        """Companies under a broker."""

    # -- Applications --

    @abstractmethod
    def create_application(self, company_id: str, current_step: str) -> Application:
        """Create the (single) application of a company."""

    @abstractmethod
    def get_application(self, application_id: str) -> Optional[Application]:
        """Fetch an application by ID."""

    @abstractmethod
    def get_application_by_company(self, company_id: str) -> Optional[Application]:
        """Fetch the application of a company."""

    @abstractmethod
    def list_applications_by_broker(self, broker_id: str) -> List[Application]:
        """Applications of every company under a broker."""

    @abstractmethod
    def save_application(self, application: Application, expected_version: int) -> Application:
        """Persist an application if the stored version still equals `expected_version`.

        Raises `StaleApplication` otherwise. Returns the stored record with its
        version incremented.
        """

    # -- Audit --

    @abstractmethod
    def append_audit_entry(self, entry: AuditEntry) -> None:
        """Append an audit entry. Entries are never updated or deleted."""

    @abstractmethod
    def list_audit_entries(self, limit: Optional[int] = None) -> List[AuditEntry]:
        """Newest first."""
