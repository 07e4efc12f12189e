"""
Consent management API routes.

Lets the signed-in user view and toggle consent per purpose and attribute.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from myitreturn.common.audit_logger import AuditEventType, audit_request
from myitreturn.common.logger import get_logger
from myitreturn.consent_service.catalog import ITR_FILING, MARKETING_COMMUNICATIONS
from myitreturn.consent_service.privacy_client import PrivacyApiError
from myitreturn.consent_service.reconcile import empty_consent_state
from myitreturn.consent_service.schemas import ConsentUpdate
from myitreturn.consent_service.service import (
    AttributeNotInPurposeError,
    PrivacyService,
    get_privacy_service,
)
from myitreturn.core.dependencies import (
    SessionUser,
    get_current_api_user,
    get_current_user,
)
from myitreturn.core.rate_limit import limiter
from myitreturn.core.templates import templates

logger = get_logger(__name__)

router = APIRouter(
    prefix="/consent",
    tags=["Consent"],
)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/management")
def consent_management(
    request: Request,
    user: SessionUser = Depends(get_current_user),
    privacy: PrivacyService = Depends(get_privacy_service),
):
    """
    Render the consent management page with current toggle state.
    """
    api_error = None

    try:
        consent_state = privacy.consent_state(user.access_token, user.subject_id)
        audit_request(request, AuditEventType.CONSENT_ACCESSED, user_id=user.subject_id)

    except PrivacyApiError:
        logger.exception(
            "Failed to load consent state",
            extra={"subject_id": user.subject_id},
        )
        consent_state = empty_consent_state()
        api_error = "Unable to load current consent state. Please try again later."

    return templates.TemplateResponse(
        request,
        "consent_management.html",
        {
            "title": "Manage Your Consent",
            "user": user.claims,
            "consent_state": consent_state,
            "purposes": [
                privacy.get_consent_metadata(MARKETING_COMMUNICATIONS),
                privacy.get_consent_metadata(ITR_FILING),
            ],
            "api_error": api_error,
        },
    )


@router.get("/state")
def read_consent_state(
    user: SessionUser = Depends(get_current_api_user),
    privacy: PrivacyService = Depends(get_privacy_service),
):
    """
    Current consent state as JSON.

    Returns:
        ``{"success": true, "consentState": {purpose: {attribute: bool}},
        "timestamp": ...}``; a ``warning`` is added when the privacy API
        could not be reached.
    """
    try:
        consent_state = privacy.consent_state(user.access_token, user.subject_id)

    except PrivacyApiError:
        logger.exception(
            "Privacy API error while reading consent state",
            extra={"subject_id": user.subject_id},
        )
        return {
            "success": True,
            "consentState": {},
            "timestamp": _timestamp(),
            "warning": "Could not fetch latest consent state",
        }

    return {
        "success": True,
        "consentState": consent_state,
        "timestamp": _timestamp(),
    }


@router.post("/update")
@limiter.limit("30/minute")
def update_consent(
    request: Request,
    payload: ConsentUpdate,
    user: SessionUser = Depends(get_current_api_user),
    privacy: PrivacyService = Depends(get_privacy_service),
):
    """
    Update a single consent toggle.
    """
    if not payload.purpose_id or not payload.attribute_id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing required fields: purposeId, attributeId"},
        )

    consent_state = payload.consent_state

    try:
        result = privacy.update_consent(
            user.access_token,
            payload.purpose_id,
            payload.attribute_id,
            consent_state,
            subject_id=user.subject_id,
        )

    except AttributeNotInPurposeError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(exc)},
        )

    except PrivacyApiError as exc:
        logger.exception(
            "Failed to update consent",
            extra={"subject_id": user.subject_id},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Failed to update consent. Please try again.",
                "detail": str(exc),
            },
        )

    details = {
        "purpose_id": payload.purpose_id,
        "attribute_id": payload.attribute_id,
        "state": int(consent_state),
    }

    if result.get("status") != "success":
        logger.error(
            "Privacy API reported failure",
            extra={"subject_id": user.subject_id, "result": result},
        )
        audit_request(
            request,
            AuditEventType.CONSENT_UPDATED,
            user_id=user.subject_id,
            details=details,
            success=False,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Privacy API failed to update consent",
                "detail": result,
            },
        )

    audit_request(
        request,
        AuditEventType.CONSENT_UPDATED,
        user_id=user.subject_id,
        details=details,
    )

    return {
        "success": True,
        "message": f"Consent updated for {payload.attribute_id}",
        "purposeId": payload.purpose_id,
        "attributeId": payload.attribute_id,
        "state": int(consent_state),
        "timestamp": _timestamp(),
    }
