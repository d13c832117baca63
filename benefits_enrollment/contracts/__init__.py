"""
Contracts (data models).

This folder defines the shapes shared by the rating engine, the enrollment
workflow and the persistence backends:
- quote requests, census members and priced quote offers
- applications, companies, users and audit entries
- the abstract `ApplicationStore` every backend implements
- the `CacheBackend` protocol of the TTL caches

Both the in-memory store (database/postgres.py) and the SQLAlchemy store
(database/postgres_real.py) use these contracts.
"""

from .interfaces import (
    Actor,
    Address,
    Application,
    ApplicationStatus,
    ApplicationStore,
    AuditAction,
    AuditEntry,
    CacheBackend,
    CensusSummary,
    Company,
    CoverageType,
    EntityType,
    MetalTier,
    Person,
    QuoteOffer,
    QuoteRequest,
    RequestContext,
    ResourceScope,
    Role,
    User,
    utcnow,
)

__all__ = [
    "Actor", "Address", "Application", "ApplicationStatus", "ApplicationStore",
    "AuditAction", "AuditEntry", "CacheBackend", "CensusSummary", "Company", "CoverageType",
    "EntityType", "MetalTier", "Person", "QuoteOffer", "QuoteRequest",
    "RequestContext", "ResourceScope", "Role", "User", "utcnow",
]
