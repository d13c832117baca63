"""
Tenant-scoped authorization for company and application resources.

Access is decided fresh on every call from the actor's current role and broker
association; nothing is cached between requests.
"""

from __future__ import annotations

import logging
from typing import Optional

from benefits_enrollment.contracts.interfaces import Actor, Company, ResourceScope, Role
from benefits_enrollment.errors import Forbidden

logger = logging.getLogger(__name__)

GLOBAL_ADMIN_ROLES = frozenset({Role.ADMIN.value, Role.MASTER_ADMIN.value})
BROKER_ROLES = frozenset({
    Role.BROKER_ADMIN.value,
    Role.BROKER_STAFF.value,
    Role.OWNER.value,
    Role.STAFF.value,
})
DOCUMENT_OVERRIDE_ROLES = frozenset({Role.ADMIN.value, Role.OWNER.value, Role.STAFF.value})


def is_global_admin(actor: Actor) -> bool:
    return actor.role in GLOBAL_ADMIN_ROLES


def can_access(actor: Actor, resource: ResourceScope) -> bool:
    if is_global_admin(actor):
        return True
    if actor.id == resource.owner_user_id:
        return True
    if (
        actor.role in BROKER_ROLES
        and resource.broker_id is not None
        and actor.broker_id == resource.broker_id
    ):
        return True
    return False


def can_override_documents(actor: Actor) -> bool:
    return actor.role in DOCUMENT_OVERRIDE_ROLES


def scope_of(company: Company) -> ResourceScope:
    return ResourceScope(owner_user_id=company.owner_user_id, broker_id=company.broker_id)


class AuthorizationGuard:
    def can_access(self, actor: Actor, resource: ResourceScope) -> bool:
        return can_access(actor, resource)

    def require_access(
        self,
        actor: Actor,
        resource: ResourceScope,
        *,
        entity_type: str = "company",
        entity_id: Optional[str] = None,
    ) -> None:
        if can_access(actor, resource):
            return
        logger.warning(
            "Access denied: actor=%s role=%s actor_broker=%s %s=%s owner=%s resource_broker=%s",
            actor.id, actor.role, actor.broker_id, entity_type, entity_id,
            resource.owner_user_id, resource.broker_id,
        )
        raise Forbidden()

    def require_company_access(self, actor: Actor, company: Company) -> None:
        self.require_access(actor, scope_of(company), entity_type="company", entity_id=company.id)
