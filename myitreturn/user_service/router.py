"""
User API routes.

Pages for the signed-in user: dashboard, profile and consent listing.
"""

import json

from fastapi import APIRouter, Depends, Request

from myitreturn.common.audit_logger import AuditEventType, audit_request
from myitreturn.common.logger import get_logger
from myitreturn.consent_service.privacy_client import PrivacyApiError
from myitreturn.consent_service.service import PrivacyService, get_privacy_service
from myitreturn.core.dependencies import SessionUser, get_current_user
from myitreturn.core.templates import templates

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
def user_dashboard(
    request: Request,
    user: SessionUser = Depends(get_current_user),
):
    """Dashboard with the File ITR and Manage Consent actions."""
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"title": "ITR Filing Dashboard", "user": user.claims},
    )


@router.get("/profile")
def user_profile(
    request: Request,
    user: SessionUser = Depends(get_current_user),
):
    return templates.TemplateResponse(
        request,
        "profile.html",
        {
            "title": "Profile Information",
            "user": user.claims,
            "full_json": json.dumps(user.claims, indent=4, default=str),
        },
    )


@router.get("/consents")
def user_consents(
    request: Request,
    user: SessionUser = Depends(get_current_user),
    privacy: PrivacyService = Depends(get_privacy_service),
):
    """
    Raw consent records as returned by the privacy API.
    """
    try:
        consents = privacy.get_user_consents(user.access_token, user.subject_id)
        title = "My Consents"
        audit_request(request, AuditEventType.CONSENT_ACCESSED, user_id=user.subject_id)

    except PrivacyApiError:
        logger.exception(
            "Failed to list consents",
            extra={"subject_id": user.subject_id},
        )
        consents = None
        title = "No consents found"

    return templates.TemplateResponse(
        request,
        "consents.html",
        {"title": title, "user": user.claims, "consents": consents},
    )
