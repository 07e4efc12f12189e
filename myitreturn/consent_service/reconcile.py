"""
Consent reconciliation.

Maps consent entries returned by the privacy API onto logical attribute
ids and derives required-consent gates from the result.

The privacy API keys attributes either by ids that match our logical ids
or by tenant-specific ids with a free-text label, and returns them either
flat on the consent entry or nested in an ``attributes`` collection.
Resolution runs an ordered rule list; the first rule that yields exactly
one attribute wins. Entries no rule can resolve are kept aside and never
count as granted.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from myitreturn.common.logger import get_logger
from myitreturn.consent_service.catalog import PURPOSES, attributes_for
from myitreturn.consent_service.schemas import (
    AttributeMeta,
    ConsentState,
    LogicalAttribute,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class RawAttribute:
    """A consent value flattened out of a privacy API entry."""

    purpose_id: str
    attribute_id: Optional[str]
    attribute_name: Optional[str]
    state: Any


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    missing: list[str] = field(default_factory=list)
    verified: bool = True


@dataclass
class ReconciledConsents:
    """
    Consent state keyed by purpose id, then logical attribute id.
    """

    granted: dict[str, dict[str, bool]] = field(default_factory=dict)
    unmapped: list[RawAttribute] = field(default_factory=list)

    def is_granted(self, purpose_id: str, attribute_id: str) -> bool:
        return self.granted.get(purpose_id, {}).get(attribute_id) is True

    def missing(self, purpose_id: str, required: Iterable[str]) -> list[str]:
        return [
            attribute_id
            for attribute_id in required
            if not self.is_granted(purpose_id, attribute_id)
        ]


# ---------------- FLATTENING ---------------- #


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def flatten_consents(consents: Iterable[Any]) -> list[RawAttribute]:
    """
    Flatten privacy API consent entries into one item per attribute.

    A top-level ``attributeId`` takes precedence over a nested
    ``attributes`` list or mapping.
    """
    flat: list[RawAttribute] = []

    for entry in consents or []:
        if not isinstance(entry, dict):
            logger.warning(
                "Skipping malformed consent entry",
                extra={"entry_type": type(entry).__name__},
            )
            continue

        purpose_id = _text(entry.get("purposeId"))
        if not purpose_id:
            continue

        if _text(entry.get("attributeId")):
            flat.append(
                RawAttribute(
                    purpose_id=purpose_id,
                    attribute_id=_text(entry.get("attributeId")),
                    attribute_name=_text(entry.get("attributeName")),
                    state=entry.get("state"),
                )
            )
            continue

        nested = entry.get("attributes") or []
        if isinstance(nested, dict):
            nested = list(nested.values())

        for attr in nested:
            if not isinstance(attr, dict):
                continue
            flat.append(
                RawAttribute(
                    purpose_id=purpose_id,
                    attribute_id=_text(attr.get("attributeId") or attr.get("id")),
                    attribute_name=_text(
                        attr.get("attributeName") or attr.get("label") or attr.get("name")
                    ),
                    state=attr.get("state"),
                )
            )

    return flat


# ---------------- RESOLUTION RULES ---------------- #


def _normalize_label(label: str) -> str:
    # mobileNumber -> mobile Number, PANNumber -> PAN Number
    label = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", " ", label)
    return " ".join(re.sub(r"[_\-.]+", " ", label.casefold()).split())


def _unique(candidates: list[str]) -> Optional[str]:
    distinct = list(dict.fromkeys(candidates))
    return distinct[0] if len(distinct) == 1 else None


def match_id(
    attribute_id: Optional[str],
    attribute_name: Optional[str],
    attributes: list[AttributeMeta],
) -> Optional[str]:
    if attribute_id is None:
        return None
    known = {attr.id.value for attr in attributes}
    return attribute_id if attribute_id in known else None


def match_exact_label(
    attribute_id: Optional[str],
    attribute_name: Optional[str],
    attributes: list[AttributeMeta],
) -> Optional[str]:
    if not attribute_name:
        return None
    name = _normalize_label(attribute_name)
    return _unique(
        [attr.id.value for attr in attributes if _normalize_label(attr.label) == name]
    )


def match_partial_label(
    attribute_id: Optional[str],
    attribute_name: Optional[str],
    attributes: list[AttributeMeta],
) -> Optional[str]:
    if not attribute_name:
        return None
    name = _normalize_label(attribute_name)
    if not name:
        return None
    return _unique(
        [
            attr.id.value
            for attr in attributes
            if name in _normalize_label(attr.label)
            or _normalize_label(attr.label) in name
        ]
    )


# pan and name only as whole words: "company", "username"
KEYWORD_PATTERNS = (
    (re.compile(r"\be ?mail"), LogicalAttribute.EMAIL),
    (re.compile(r"\b(mobile|phone)"), LogicalAttribute.MOBILE_NUMBER),
    (re.compile(r"\baadhaa?r"), LogicalAttribute.AADHAR_ID),
    (re.compile(r"\bpan\b"), LogicalAttribute.PAN_ID),
    (re.compile(r"\bname\b"), LogicalAttribute.NAME),
)


def match_keyword(
    attribute_id: Optional[str],
    attribute_name: Optional[str],
    attributes: list[AttributeMeta],
) -> Optional[str]:
    if not attribute_name:
        return None
    name = _normalize_label(attribute_name)
    return _unique(
        [attribute.value for pattern, attribute in KEYWORD_PATTERNS if pattern.search(name)]
    )


ResolutionRule = Callable[
    [Optional[str], Optional[str], list[AttributeMeta]], Optional[str]
]

RESOLUTION_RULES: tuple[tuple[str, ResolutionRule], ...] = (
    ("id", match_id),
    ("exact_label", match_exact_label),
    ("partial_label", match_partial_label),
    ("keyword", match_keyword),
)


def resolve_attribute(
    purpose_id: str,
    attribute_id: Optional[str],
    attribute_name: Optional[str] = None,
) -> Optional[str]:
    """
    Resolve a tenant attribute to a logical attribute id.

    Returns None when no rule resolves it unambiguously.
    """
    attributes = attributes_for(purpose_id)

    for rule_name, rule in RESOLUTION_RULES:
        logical_id = rule(attribute_id, attribute_name, attributes)
        if logical_id:
            logger.debug(
                "Consent attribute resolved",
                extra={
                    "purpose_id": purpose_id,
                    "attribute_id": attribute_id,
                    "logical_id": logical_id,
                    "rule": rule_name,
                },
            )
            return logical_id

    return None


# ---------------- RECONCILIATION ---------------- #


def empty_consent_state() -> dict[str, dict[str, bool]]:
    """Every catalog attribute of every catalog purpose, ungranted."""
    return {
        purpose_id: {attribute_id: False for attribute_id in purpose.attribute_ids}
        for purpose_id, purpose in PURPOSES.items()
    }


def reconcile_consents(consents: Iterable[Any]) -> ReconciledConsents:
    """
    Build the logical consent state from raw privacy API entries.

    When several entries resolve to the same purpose and attribute, the
    last one wins.
    """
    result = ReconciledConsents(granted=empty_consent_state())

    for raw in flatten_consents(consents):
        logical_id = resolve_attribute(raw.purpose_id, raw.attribute_id, raw.attribute_name)

        if logical_id is None:
            result.unmapped.append(raw)
            continue

        result.granted.setdefault(raw.purpose_id, {})[logical_id] = (
            ConsentState.parse(raw.state) is ConsentState.GRANTED
        )

    if result.unmapped:
        logger.info(
            "Unmapped consent attributes ignored",
            extra={
                "count": len(result.unmapped),
                "attributes": [
                    raw.attribute_name or raw.attribute_id for raw in result.unmapped
                ],
            },
        )

    return result


def evaluate_gate(
    reconciled: ReconciledConsents,
    purpose_id: str,
    required: Iterable[str],
) -> GateDecision:
    """
    Allow only if every required attribute is granted for ``purpose_id``.
    """
    missing = reconciled.missing(purpose_id, list(required))
    return GateDecision(allowed=not missing, missing=missing)
