"""
Broker and admin endpoints: broker listings, document override, role changes,
the IP block list and the audit log.
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import Response

from benefits_enrollment.api.dependencies import Services, get_actor, get_services, request_context
from benefits_enrollment.api.schemas import DocumentOverrideRequest, IPBlockRequest, RoleUpdateRequest
from benefits_enrollment.contracts.interfaces import Actor, AuditAction, EntityType, RequestContext, utcnow
from benefits_enrollment.errors import CompanyNotFound
from benefits_enrollment.workflow.audit import to_csv
from benefits_enrollment.workflow.authorization import BROKER_ROLES, can_override_documents, is_global_admin

logger = logging.getLogger(__name__)

api = APIRouter()


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not is_global_admin(actor):
        logger.warning("Admin endpoint denied: actor=%s role=%s", actor.id, actor.role)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return actor


def require_broker(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.broker_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied: No broker association")
    if actor.role not in BROKER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Broker access required")
    return actor


# --------------------------------------------------------------------------- #
# Broker
# --------------------------------------------------------------------------- #
@api.get("/broker/companies", tags=["Broker"])
def list_broker_companies(actor: Actor = Depends(require_broker), services: Services = Depends(get_services)):
    companies = services.store.list_companies_by_broker(actor.broker_id)
    return [
        {
            "id": c.id,
            "name": c.name,
            "owner_user_id": c.owner_user_id,
            "broker_id": c.broker_id,
            "zip_code": c.zip_code,
            "created_at": c.created_at.isoformat(),
        }
        for c in companies
    ]


@api.get("/broker/applications", tags=["Broker"])
def list_broker_applications(actor: Actor = Depends(require_broker), services: Services = Depends(get_services)):
    return [a.to_dict() for a in services.store.list_applications_by_broker(actor.broker_id)]


# --------------------------------------------------------------------------- #
# Admin
# --------------------------------------------------------------------------- #
@api.post("/admin/document-override", tags=["Admin"])
def document_override(
    payload: DocumentOverrideRequest,
    actor: Actor = Depends(get_actor),
    context: RequestContext = Depends(request_context),
    services: Services = Depends(get_services),
):
    """Waive the document requirements of a company, with a recorded reason."""
    if not can_override_documents(actor):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions for override")
    reason = (payload.reason or "").strip()
    if not reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Override reason is required")

    company = services.store.get_company(payload.company_id)
    if company is None:
        raise CompanyNotFound()
    services.guard.require_company_access(actor, company)

    services.audit.log(
        actor,
        AuditAction.DOCUMENT_OVERRIDE,
        EntityType.COMPANY,
        company.id,
        f"Document requirements overridden: {reason}",
        context,
    )
    logger.info("Document override on company=%s by actor=%s", company.id, actor.id)
    return {
        "success": True,
        "message": "Document override applied successfully",
        "overridden_by": actor.id,
        "overridden_at": utcnow().isoformat(),
    }


@api.patch("/admin/users/{user_id}/role", tags=["Admin"])
def update_user_role(
    user_id: str,
    payload: RoleUpdateRequest,
    actor: Actor = Depends(require_admin),
    context: RequestContext = Depends(request_context),
    services: Services = Depends(get_services),
):
    user = services.store.update_user_role(user_id, payload.role.value)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    services.audit.log(
        actor,
        AuditAction.ADMIN_USER_UPDATE,
        EntityType.USER,
        user.id,
        f"Role of user {user.username} changed to {user.role}",
        context,
    )
    return {"id": user.id, "username": user.username, "role": user.role, "broker_id": user.broker_id}


@api.post("/admin/ip-blocks", tags=["Admin"], status_code=status.HTTP_201_CREATED)
def block_ip(
    payload: IPBlockRequest,
    actor: Actor = Depends(require_admin),
    context: RequestContext = Depends(request_context),
    services: Services = Depends(get_services),
):
    ip_address = str(payload.ip_address)
    ttl = payload.ttl_seconds or services.ip_block_list.default_ttl
    services.ip_block_list.block(ip_address, reason=payload.reason, ttl=ttl)
    services.audit.log(
        actor,
        AuditAction.ADMIN_IP_BLOCK,
        EntityType.IP_ADDRESS,
        ip_address,
        f"IP {ip_address} blocked for {ttl}s: {payload.reason}",
        context,
    )
    return {"ip_address": ip_address, "blocked": True, "expires_in": ttl}


@api.delete("/admin/ip-blocks/{ip_address}", tags=["Admin"])
def unblock_ip(
    ip_address: str,
    actor: Actor = Depends(require_admin),
    context: RequestContext = Depends(request_context),
    services: Services = Depends(get_services),
):
    if not services.ip_block_list.is_blocked(ip_address):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="IP address is not blocked")
    services.ip_block_list.unblock(ip_address)
    services.audit.log(
        actor,
        AuditAction.ADMIN_IP_UNBLOCK,
        EntityType.IP_ADDRESS,
        ip_address,
        f"IP {ip_address} unblocked",
        context,
    )
    return {"ip_address": ip_address, "blocked": False}


@api.get("/admin/audit-logs", tags=["Admin"])
def list_audit_logs(
    limit: int = Query(default=50, ge=1, le=500),
    actor: Actor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return [
        {
            "timestamp": e.timestamp.isoformat(),
            "action": e.action.value,
            "user_id": e.actor_user_id,
            "entity_type": e.entity_type.value,
            "entity_id": e.entity_id,
            "details": e.details,
            "ip_address": e.ip_address,
            "user_agent": e.user_agent,
        }
        for e in services.audit.recent(limit)
    ]


@api.get("/admin/audit-logs/export", tags=["Admin"])
def export_audit_logs(actor: Actor = Depends(require_admin), services: Services = Depends(get_services)):
    csv_body = to_csv(services.audit.recent(limit=None))
    return Response(
        content=csv_body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="audit-logs.csv"'},
    )


# --------------------------------------------------------------------------- #
# Security
# --------------------------------------------------------------------------- #
@api.get("/security/csrf-token", tags=["Security"])
def issue_csrf_token(
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
    x_session_id: str = Header(default=None, alias="X-Session-Id"),
):
    if not x_session_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-Session-Id header is required")
    token = services.csrf_tokens.issue(x_session_id)
    return {"csrf_token": token, "expires_in": services.csrf_tokens.ttl_seconds}
