"""
Consent service logic.

Reads and writes the user's consent records in the privacy API and
reconciles them into logical consent state.
"""

from typing import Any, Dict, Iterable, List, Optional

from myitreturn.common.logger import get_logger
from myitreturn.consent_service.catalog import get_purpose
from myitreturn.consent_service.privacy_client import (
    PrivacyApiClient,
    PrivacyApiError,
    build_privacy_client,
)
from myitreturn.consent_service.reconcile import (
    GateDecision,
    evaluate_gate,
    reconcile_consents,
)
from myitreturn.consent_service.schemas import (
    ConsentRecord,
    ConsentState,
    PurposeMeta,
)

logger = get_logger(__name__)


class AttributeNotInPurposeError(ValueError):
    """Raised when an attribute is not configured for a purpose."""

    def __init__(self, purpose_id: str, attribute_id: str):
        super().__init__(
            f"Attribute '{attribute_id}' is not defined for purpose "
            f"'{purpose_id}'. Please configure this attribute in Verify."
        )
        self.purpose_id = purpose_id
        self.attribute_id = attribute_id


class PrivacyService:
    """
    Consent operations for the signed-in user.
    """

    def __init__(self, client: PrivacyApiClient):
        self.client = client

    def get_user_consents(
        self,
        access_token: str,
        subject_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Raises:
            PrivacyApiError: If the privacy API cannot be reached.
        """
        consents = self.client.get_user_consents(access_token, subject_id)
        logger.info(
            "Retrieved user consents",
            extra={"subject_id": subject_id, "count": len(consents)},
        )
        return consents

    def get_consents_for_purpose(
        self,
        access_token: str,
        purpose_id: str,
        subject_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        # One entry per attribute; keep all of them
        return [
            consent
            for consent in self.get_user_consents(access_token, subject_id)
            if isinstance(consent, dict) and consent.get("purposeId") == purpose_id
        ]

    def consent_state(
        self,
        access_token: str,
        subject_id: Optional[str] = None,
    ) -> Dict[str, Dict[str, bool]]:
        """
        Logical consent state: ``{purpose_id: {attribute_id: granted}}``.

        Raises:
            PrivacyApiError: If the privacy API cannot be reached.
        """
        return reconcile_consents(self.get_user_consents(access_token, subject_id)).granted

    def _check_attribute_in_purpose(
        self,
        access_token: str,
        purpose_id: str,
        attribute_id: str,
    ) -> None:
        try:
            metadata = self.client.get_consent_metadata(access_token, [purpose_id])
        except PrivacyApiError as exc:
            # The store call validates again on the API side
            logger.warning(
                "Could not validate purpose metadata before storing consent",
                extra={"purpose_id": purpose_id, "error": str(exc)},
            )
            return

        purposes = metadata.get("purposes") or {}
        purpose_def = purposes.get(purpose_id) if isinstance(purposes, dict) else None
        if not purpose_def:
            return

        attribute_ids = [
            attr.get("id")
            for attr in purpose_def.get("attributes") or []
            if isinstance(attr, dict)
        ]
        if attribute_id not in attribute_ids:
            logger.error(
                "Attribute not part of purpose",
                extra={"purpose_id": purpose_id, "attribute_id": attribute_id},
            )
            raise AttributeNotInPurposeError(purpose_id, attribute_id)

    def update_consent(
        self,
        access_token: str,
        purpose_id: str,
        attribute_id: str,
        state: ConsentState = ConsentState.GRANTED,
        subject_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create or update a single consent record.

        Returns:
            Store result ``{"status": ..., "results": [...]}``.

        Raises:
            AttributeNotInPurposeError: If the tenant does not define the
                attribute for the purpose.
            PrivacyApiError: If the store call fails.
        """
        logger.info(
            "Updating consent",
            extra={
                "purpose_id": purpose_id,
                "attribute_id": attribute_id,
                "state": int(state),
            },
        )

        self._check_attribute_in_purpose(access_token, purpose_id, attribute_id)

        # startTime is left to the API; purposes may reject explicit values
        record = ConsentRecord(
            purpose_id=purpose_id,
            attribute_id=attribute_id,
            state=state,
        )
        result = self.client.store_consents(
            access_token,
            [record.model_dump(by_alias=True)],
            subject_id=subject_id,
        )

        logger.info(
            "Consent store completed",
            extra={"purpose_id": purpose_id, "status": result.get("status")},
        )
        return result

    def create_consents(
        self,
        access_token: str,
        records: Iterable[ConsentRecord],
        subject_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Store several consent records, in order.
        """
        records = list(records)
        logger.info("Creating consent records", extra={"count": len(records)})

        results = [
            self.update_consent(
                access_token,
                record.purpose_id,
                record.attribute_id,
                ConsentState(record.state),
                subject_id=subject_id,
            )
            for record in records
        ]

        logger.info("Consent records created", extra={"count": len(results)})
        return results

    @staticmethod
    def get_consent_metadata(purpose_id: str) -> Optional[PurposeMeta]:
        return get_purpose(purpose_id)

    def assess(
        self,
        access_token: str,
        purpose_id: str,
        required: Iterable[str],
        subject_id: Optional[str] = None,
    ) -> GateDecision:
        """
        Decide whether every required attribute is granted for a purpose.

        Fails closed: if the privacy API is unreachable the decision is
        unverified and reports every required attribute as missing.
        """
        required = list(required)

        try:
            consents = self.get_consents_for_purpose(access_token, purpose_id, subject_id)
        except PrivacyApiError:
            logger.exception(
                "Consent check failed, denying",
                extra={"purpose_id": purpose_id},
            )
            return GateDecision(allowed=False, missing=required, verified=False)

        decision = evaluate_gate(reconcile_consents(consents), purpose_id, required)
        logger.info(
            "Required consents checked",
            extra={
                "purpose_id": purpose_id,
                "allowed": decision.allowed,
                "missing": decision.missing,
            },
        )
        return decision


def get_privacy_service() -> PrivacyService:
    """FastAPI dependency."""
    return PrivacyService(build_privacy_client())
