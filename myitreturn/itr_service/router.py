"""
ITR filing API routes.

"File ITR" posts to /itr/assess; the user lands on the success page when
all required consents are granted, otherwise on the consent-required page.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from myitreturn.common.audit_logger import AuditEventType, audit_request
from myitreturn.common.logger import get_logger
from myitreturn.consent_service.service import PrivacyService, get_privacy_service
from myitreturn.core.dependencies import SessionUser, get_current_user
from myitreturn.core.templates import templates
from myitreturn.itr_service.service import (
    can_file_itr,
    generate_reference_id,
    missing_labels,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/itr", tags=["ITR"])


@router.post("/assess")
def assess_and_file(
    request: Request,
    user: SessionUser = Depends(get_current_user),
    privacy: PrivacyService = Depends(get_privacy_service),
):
    """
    Check ITR filing consents and file when all are granted.
    """
    decision = can_file_itr(privacy, user.access_token, user.subject_id)

    if not decision.verified:
        audit_request(
            request,
            AuditEventType.ITR_BLOCKED,
            user_id=user.subject_id,
            details={"reason": "consent_check_unavailable"},
            success=False,
        )
        return templates.TemplateResponse(
            request,
            "itr_blocked.html",
            {
                "title": "Error",
                "user": user.claims,
                "error": (
                    "We could not verify your consent status. "
                    "Please try again."
                ),
            },
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    if not decision.allowed:
        logger.info(
            "ITR filing blocked by missing consents",
            extra={"subject_id": user.subject_id, "missing": decision.missing},
        )
        audit_request(
            request,
            AuditEventType.ITR_BLOCKED,
            user_id=user.subject_id,
            details={"missing": decision.missing},
            success=False,
        )
        return templates.TemplateResponse(
            request,
            "itr_blocked.html",
            {
                "title": "Consent Required",
                "user": user.claims,
                "missing_consents": decision.missing,
                "missing_consents_labels": missing_labels(decision.missing),
            },
            status_code=status.HTTP_403_FORBIDDEN,
        )

    logger.info("ITR filing allowed", extra={"subject_id": user.subject_id})
    audit_request(request, AuditEventType.ITR_FILED, user_id=user.subject_id)

    return RedirectResponse("/itr/success", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/success")
def itr_success(
    request: Request,
    user: SessionUser = Depends(get_current_user),
):
    return templates.TemplateResponse(
        request,
        "itr_success.html",
        {
            "title": "ITR Filed Successfully",
            "user": user.claims,
            "reference_id": generate_reference_id(),
        },
    )


@router.get("/blocked")
def itr_blocked(
    request: Request,
    user: SessionUser = Depends(get_current_user),
):
    return templates.TemplateResponse(
        request,
        "itr_blocked.html",
        {
            "title": "Consent Required",
            "user": user.claims,
            "message": "You must grant all required consents before filing your ITR",
        },
    )
