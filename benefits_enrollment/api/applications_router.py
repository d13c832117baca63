"""
API endpoints for companies and their enrollment applications.

All workflow changes go through `ProgressController`; handlers only translate
HTTP into controller calls. Enrollment errors propagate to the exception
handler registered in `benefits_enrollment/api/main.py`.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from benefits_enrollment.api.dependencies import Services, client_ip, get_actor, get_services, request_context
from benefits_enrollment.api.schemas import CompanyCreateRequest, SignatureRequest
from benefits_enrollment.contracts.interfaces import Actor, RequestContext

logger = logging.getLogger(__name__)

api = APIRouter()


@api.post("/companies", status_code=status.HTTP_201_CREATED, tags=["Companies"])
def create_company(
    payload: CompanyCreateRequest,
    actor: Actor = Depends(get_actor),
    context: RequestContext = Depends(request_context),
    services: Services = Depends(get_services),
):
    company, application = services.controller.create_company(
        actor, payload.name, zip_code=payload.zip_code, context=context
    )
    return {
        "company": {
            "id": company.id,
            "name": company.name,
            "owner_user_id": company.owner_user_id,
            "broker_id": company.broker_id,
            "zip_code": company.zip_code,
            "created_at": company.created_at.isoformat(),
        },
        "application": application.to_dict(),
    }


@api.get("/companies/{company_id}/application", tags=["Applications"])
def get_company_application(
    company_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    return services.controller.get_application_for_company(company_id, actor).to_dict()


@api.post("/companies/{company_id}/steps/{step}", tags=["Applications"])
def complete_company_step(
    company_id: str,
    step: str,
    actor: Actor = Depends(get_actor),
    context: RequestContext = Depends(request_context),
    services: Services = Depends(get_services),
):
    """Complete a step, creating the company's application on first write."""
    return services.controller.advance_for_company(company_id, step, actor, context).to_dict()


@api.get("/applications/{application_id}", tags=["Applications"])
def get_application(
    application_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    return services.controller.get_application(application_id, actor).to_dict()


@api.post("/applications/{application_id}/steps/{step}", tags=["Applications"])
def complete_step(
    application_id: str,
    step: str,
    actor: Actor = Depends(get_actor),
    context: RequestContext = Depends(request_context),
    services: Services = Depends(get_services),
):
    return services.controller.advance(application_id, step, actor, context).to_dict()


@api.post("/applications/{application_id}/signature", tags=["Applications"])
def sign_application(
    application_id: str,
    payload: SignatureRequest,
    request: Request,
    actor: Actor = Depends(get_actor),
    context: RequestContext = Depends(request_context),
    services: Services = Depends(get_services),
    x_session_id: Optional[str] = Header(default=None, alias="X-Session-Id"),
    x_csrf_token: Optional[str] = Header(default=None, alias="X-CSRF-Token"),
):
    """Sign and submit the application. Submission is one-way."""
    if x_session_id and not services.csrf_tokens.validate(x_session_id, x_csrf_token):
        logger.warning("CSRF validation failed: actor=%s application=%s", actor.id, application_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid CSRF token")

    ip = client_ip(request) or "unknown"
    if not services.submission_limiter.allow(ip):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many submission attempts, please try again later",
        )

    application = services.controller.submit(application_id, payload.signature, actor, context)
    return {"message": "Application signed and submitted", "application": application.to_dict()}
