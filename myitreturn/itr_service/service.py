"""
ITR filing gate.

A return may be filed only when every required attribute is consented
for the ITR filing purpose.
"""

import secrets
import string
import time
from typing import List, Optional

from myitreturn.common.logger import get_logger
from myitreturn.consent_service.catalog import (
    ITR_FILING,
    ITR_REQUIRED_ATTRIBUTES,
    get_purpose,
)
from myitreturn.consent_service.reconcile import GateDecision
from myitreturn.consent_service.service import PrivacyService

logger = get_logger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


def can_file_itr(
    privacy: PrivacyService,
    access_token: str,
    subject_id: Optional[str] = None,
) -> GateDecision:
    """Gate decision for the ITR filing purpose."""
    return privacy.assess(
        access_token,
        ITR_FILING,
        ITR_REQUIRED_ATTRIBUTES,
        subject_id=subject_id,
    )


def missing_labels(missing: List[str]) -> List[str]:
    """Display labels for missing attribute ids."""
    purpose = get_purpose(ITR_FILING)
    return [purpose.label_for(attribute_id) for attribute_id in missing]


def _base36(number: int) -> str:
    digits = ""
    while True:
        number, remainder = divmod(number, 36)
        digits = _BASE36[remainder] + digits
        if number == 0:
            return digits


def generate_reference_id() -> str:
    """
    Filing reference for the confirmation page.

    Format: ``ITR-<base36 epoch millis>-<6 random base36 chars>``.
    """
    timestamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"ITR-{timestamp}-{suffix}"
