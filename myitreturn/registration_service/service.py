"""
Registration service logic.

Builds the in-progress user record kept in session across the three
registration steps, and the consent records the wizard produces.
"""

import re
from typing import Any, Dict, List

from passlib.context import CryptContext

from myitreturn.common.logger import get_logger
from myitreturn.consent_service.catalog import ITR_FILING, MARKETING_COMMUNICATIONS
from myitreturn.consent_service.schemas import (
    ConsentRecord,
    ConsentState,
    LogicalAttribute,
)
from myitreturn.registration_service.schemas import AccountStep, TaxIdentityStep

logger = get_logger(__name__)

REGISTRATION_KEY = "registration"
PENDING_CONSENTS_KEY = "pending_consents"

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    """
    Hash a plain-text password.

    Args:
        password (str): Raw user password.

    Returns:
        str: Secure hashed password.
    """
    return pwd_context.hash(password)


def mask_aadhaar(aadhaar: str) -> str:
    """``123456789012`` -> ``********9012``."""
    if not aadhaar:
        return ""
    digits = re.sub(r"\D", "", aadhaar)
    return "*" * 8 + digits[-4:]


def mask_pan(pan: str) -> str:
    """``ABCDE1234F`` -> ``ABCDE****F``."""
    if not pan:
        return ""
    pan = pan.upper()
    return pan[:5] + "*" * 4 + pan[-1:]


def build_account_record(step: AccountStep) -> Dict[str, Any]:
    """
    Session record for a completed step 1.

    The password is kept only as a hash.
    """
    return {
        "full_name": step.full_name,
        "email": step.email,
        "mobile": step.mobile,
        "password_hash": hash_password(step.password),
        "marketing_consents": {
            "name": step.marketing_name,
            "email": step.marketing_email,
            "mobile": step.marketing_mobile,
        },
    }


def add_tax_identity(record: Dict[str, Any], step: TaxIdentityStep) -> Dict[str, Any]:
    """Attach masked Aadhaar and PAN; full numbers are never stored."""
    updated = dict(record)
    updated["aadhaar"] = mask_aadhaar(step.aadhaar)
    updated["pan"] = mask_pan(step.pan)
    return updated


def _grant(flag: bool) -> ConsentState:
    return ConsentState.GRANTED if flag else ConsentState.DENIED


def build_registration_consents(record: Dict[str, Any]) -> List[ConsentRecord]:
    """
    Consent records for a completed registration.

    Marketing consents follow the step 1 checkboxes. ITR filing consents are
    all granted: Aadhaar and PAN were opted into explicitly in step 3 and the
    remaining attributes are required to file.
    """
    marketing = record.get("marketing_consents") or {}

    consents = [
        ConsentRecord(
            purpose_id=MARKETING_COMMUNICATIONS,
            attribute_id=LogicalAttribute.NAME.value,
            state=_grant(marketing.get("name", False)),
        ),
        ConsentRecord(
            purpose_id=MARKETING_COMMUNICATIONS,
            attribute_id=LogicalAttribute.EMAIL.value,
            state=_grant(marketing.get("email", False)),
        ),
        ConsentRecord(
            purpose_id=MARKETING_COMMUNICATIONS,
            attribute_id=LogicalAttribute.MOBILE_NUMBER.value,
            state=_grant(marketing.get("mobile", False)),
        ),
    ]
    consents.extend(
        ConsentRecord(
            purpose_id=ITR_FILING,
            attribute_id=attribute.value,
            state=ConsentState.GRANTED,
        )
        for attribute in LogicalAttribute
    )

    logger.info(
        "Registration consents built",
        extra={"count": len(consents)},
    )
    return consents
