"""
Session API routes.

Handles the landing page and the OIDC login, callback and logout flow.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from myitreturn.auth_service.oidc import (
    OIDCClient,
    OIDCDiscoveryError,
    OIDCError,
    get_oidc_client,
)
from myitreturn.common.audit_logger import AuditEventType, audit_request
from myitreturn.common.logger import get_logger
from myitreturn.consent_service.privacy_client import PrivacyApiError
from myitreturn.consent_service.schemas import ConsentRecord
from myitreturn.consent_service.service import (
    AttributeNotInPurposeError,
    PrivacyService,
    get_privacy_service,
)
from myitreturn.core.config import settings
from myitreturn.core.rate_limit import limiter
from myitreturn.core.security import (
    AUTH_STATE_KEY,
    POST_LOGIN_REDIRECT_KEY,
    TOKEN_SET_KEY,
    decode_id_token_claims,
    is_logged_in,
    new_state_token,
)
from myitreturn.core.templates import templates
from myitreturn.registration_service.service import PENDING_CONSENTS_KEY

logger = get_logger(__name__)

router = APIRouter(tags=["Session"])


def _safe_redirect_target(target: Optional[str]) -> str:
    # Only same-site paths
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return "/"


@router.get("/", response_class=HTMLResponse)
def landing(request: Request):
    if is_logged_in(request):
        return RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)

    return templates.TemplateResponse(
        request,
        "index.html",
        {"title": "myITReturn Demo - DPDP-Compliant ITR Filing"},
    )


@router.get("/dashboard")
def dashboard(request: Request):
    target = "/users" if is_logged_in(request) else "/"
    return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/login")
@limiter.limit("10/minute")
def login(
    request: Request,
    next: Optional[str] = None,
    oidc: OIDCClient = Depends(get_oidc_client),
):
    """
    Start the login flow by redirecting to the identity provider.
    """
    state = new_state_token()
    request.session[AUTH_STATE_KEY] = state
    if next:
        request.session[POST_LOGIN_REDIRECT_KEY] = _safe_redirect_target(next)

    try:
        url = oidc.authorization_url(state)

    except OIDCDiscoveryError:
        return PlainTextResponse(
            "OIDC discovery failed. Check MYITR_VERIFY_DISCOVERY_URL and ensure "
            "the discovery endpoint returns JSON (openid-configuration). "
            "See server logs for details.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.info("Redirecting to identity provider")
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


def _push_pending_consents(
    request: Request,
    privacy: PrivacyService,
    access_token: str,
    subject_id: Optional[str],
) -> None:
    """Store consents captured during registration, once signed in."""
    pending = request.session.pop(PENDING_CONSENTS_KEY, None)
    if not pending:
        return

    records = [ConsentRecord.model_validate(item) for item in pending]

    try:
        results = privacy.create_consents(access_token, records, subject_id=subject_id)

    except (PrivacyApiError, AttributeNotInPurposeError) as exc:
        logger.warning(
            "Registration consents could not be stored",
            extra={"subject_id": subject_id, "error": str(exc)},
        )
        audit_request(
            request,
            AuditEventType.CONSENT_UPDATED,
            user_id=subject_id,
            details={"source": "registration", "error": str(exc)},
            success=False,
        )
        return

    failed = sum(1 for result in results if result.get("status") != "success")
    if failed:
        logger.warning(
            "Privacy API rejected registration consents",
            extra={"subject_id": subject_id, "failed": failed, "count": len(records)},
        )
        audit_request(
            request,
            AuditEventType.CONSENT_UPDATED,
            user_id=subject_id,
            details={"source": "registration", "count": len(records), "failed": failed},
            success=False,
        )
        return

    audit_request(
        request,
        AuditEventType.CONSENT_UPDATED,
        user_id=subject_id,
        details={"source": "registration", "count": len(records)},
    )


@router.get("/auth/callback")
def auth_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    oidc: OIDCClient = Depends(get_oidc_client),
    privacy: PrivacyService = Depends(get_privacy_service),
):
    """Handle the redirect from the identity provider and create a session."""
    expected_state = request.session.pop(AUTH_STATE_KEY, None)
    if not expected_state or expected_state != state:
        audit_request(
            request,
            AuditEventType.AUTH_FAILED,
            details={"reason": "invalid_state"},
            success=False,
        )
        request.session.clear()
        return PlainTextResponse(
            "Authentication failed (invalid state). Please try again.",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    if not code:
        audit_request(
            request,
            AuditEventType.AUTH_FAILED,
            details={"reason": error or "missing_code"},
            success=False,
        )
        request.session.clear()
        return PlainTextResponse(
            f"Authentication failed: {error or 'unknown_error'}\n\n{error_description or ''}",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        token_set = oidc.exchange_code(code)

    except OIDCError as exc:
        audit_request(
            request,
            AuditEventType.AUTH_FAILED,
            details={"reason": str(exc)},
            success=False,
        )
        request.session.clear()
        return PlainTextResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)

    request.session[TOKEN_SET_KEY] = token_set.model_dump(exclude_none=True)
    subject_id = decode_id_token_claims(token_set.id_token).get("sub")

    audit_request(request, AuditEventType.USER_LOGIN, user_id=subject_id)

    _push_pending_consents(request, privacy, token_set.access_token, subject_id)

    target = request.session.pop(POST_LOGIN_REDIRECT_KEY, None) or "/"
    return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/logout")
def logout(
    request: Request,
    oidc: OIDCClient = Depends(get_oidc_client),
):
    """
    Clear the local session and redirect to the provider logout.
    """
    if not is_logged_in(request):
        return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)

    token_set = request.session.get(TOKEN_SET_KEY) or {}
    subject_id = decode_id_token_claims(token_set.get("id_token")).get("sub")
    request.session.clear()

    audit_request(request, AuditEventType.USER_LOGOUT, user_id=subject_id)

    return_to = settings.APP_BASE_URL or str(request.base_url)
    return RedirectResponse(
        oidc.logout_url(return_to.rstrip("/")),
        status_code=status.HTTP_302_FOUND,
    )
