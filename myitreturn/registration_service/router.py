"""
Registration API routes.

Three-step registration for ITR filing:
  Step 1 -> account information and marketing consents
  Step 2 -> tax identity (Aadhaar, PAN)
  Step 3 -> consent confirmation, then login
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from myitreturn.common.audit_logger import AuditEventType, audit_request
from myitreturn.common.logger import get_logger
from myitreturn.core.rate_limit import limiter
from myitreturn.core.security import is_logged_in
from myitreturn.core.templates import templates
from myitreturn.registration_service.schemas import (
    AccountStep,
    ConsentStep,
    TaxIdentityStep,
    first_error_message,
)
from myitreturn.registration_service.service import (
    PENDING_CONSENTS_KEY,
    REGISTRATION_KEY,
    add_tax_identity,
    build_account_record,
    build_registration_consents,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/register", tags=["Registration"])

TOTAL_STEPS = 3

STEP_TITLES = {
    1: "Create Account",
    2: "Provide Tax Identity Information",
    3: "Review Your Information",
}


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def _render_step(
    request: Request,
    step: int,
    *,
    error: str = None,
    form_data: dict = None,
    status_code: int = status.HTTP_200_OK,
):
    # Secrets are never echoed back into the form
    safe_form = {
        key: value
        for key, value in (form_data or {}).items()
        if "password" not in key.lower()
    }
    return templates.TemplateResponse(
        request,
        f"register_step{step}.html",
        {
            "title": STEP_TITLES[step],
            "step": step,
            "total_steps": TOTAL_STEPS,
            "user": request.session.get(REGISTRATION_KEY),
            "error": error,
            "form_data": safe_form,
        },
        status_code=status_code,
    )


def _checked(form, field: str) -> bool:
    return form.get(field) == "on"


@router.get("")
def register_index():
    return _redirect("/register/step1")


@router.get("/step1")
def get_step1(request: Request):
    if is_logged_in(request):
        return _redirect("/dashboard")
    return _render_step(request, 1)


@router.post("/step1")
@limiter.limit("10/minute")
async def post_step1(request: Request):
    if is_logged_in(request):
        return _redirect("/dashboard")

    form = dict(await request.form())

    try:
        step = AccountStep(
            full_name=form.get("fullName", ""),
            email=form.get("email", ""),
            mobile=form.get("mobile", ""),
            password=form.get("password", ""),
            confirm_password=form.get("confirmPassword", ""),
            marketing_name=_checked(form, "marketing-name"),
            marketing_email=_checked(form, "marketing-email"),
            marketing_mobile=_checked(form, "marketing-mobile"),
        )

    except ValidationError as exc:
        message = first_error_message(exc)
        logger.info("Registration step 1 rejected", extra={"reason": message})
        return _render_step(
            request,
            1,
            error=message,
            form_data=form,
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    request.session[REGISTRATION_KEY] = build_account_record(step)
    logger.info("Registration step 1 complete")
    return _redirect("/register/step2")


@router.get("/step2")
def get_step2(request: Request):
    if is_logged_in(request):
        return _redirect("/dashboard")
    if not request.session.get(REGISTRATION_KEY):
        return _redirect("/register/step1")
    return _render_step(request, 2)


@router.post("/step2")
async def post_step2(request: Request):
    if is_logged_in(request):
        return _redirect("/dashboard")

    record = request.session.get(REGISTRATION_KEY)
    if not record:
        return _redirect("/register/step1")

    form = dict(await request.form())

    try:
        step = TaxIdentityStep(
            aadhaar=form.get("aadhaar", ""),
            pan=form.get("pan", ""),
        )

    except ValidationError as exc:
        message = first_error_message(exc)
        logger.info("Registration step 2 rejected", extra={"reason": message})
        return _render_step(
            request,
            2,
            error=message,
            form_data=form,
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    request.session[REGISTRATION_KEY] = add_tax_identity(record, step)
    logger.info("Registration step 2 complete")
    return _redirect("/register/step3")


@router.get("/step3")
def get_step3(request: Request):
    if is_logged_in(request):
        return _redirect("/dashboard")
    record = request.session.get(REGISTRATION_KEY)
    if not record or not record.get("aadhaar"):
        return _redirect("/register/step2")
    return _render_step(request, 3)


@router.post("/step3")
async def post_step3(request: Request):
    if is_logged_in(request):
        return _redirect("/dashboard")

    record = request.session.get(REGISTRATION_KEY)
    if not record:
        return _redirect("/register/step1")
    if not record.get("aadhaar"):
        return _redirect("/register/step2")

    form = await request.form()

    try:
        ConsentStep(
            aadhaar_consent=_checked(form, "aadhaarConsent"),
            pan_consent=_checked(form, "panConsent"),
        )

    except ValidationError as exc:
        return _render_step(
            request,
            3,
            error=first_error_message(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    consents = build_registration_consents(record)

    # Stored with the privacy API after the first successful login
    request.session[PENDING_CONSENTS_KEY] = [
        consent.model_dump(by_alias=True) for consent in consents
    ]
    request.session.pop(REGISTRATION_KEY, None)

    audit_request(
        request,
        AuditEventType.REGISTRATION_COMPLETED,
        details={"consent_count": len(consents)},
    )
    logger.info("Registration complete, redirecting to login")

    return _redirect("/login?registered=true")
