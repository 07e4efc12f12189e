"""
Purpose catalog.

Display metadata for the purposes configured in the privacy tenant.
Attribute ids are the logical ids; tenants may expose the same fields
under their own ids and labels.
"""

from typing import Optional

from myitreturn.consent_service.schemas import (
    AttributeMeta,
    LogicalAttribute,
    PurposeMeta,
)

MARKETING_COMMUNICATIONS = "MARKETING_COMMUNICATIONS"
ITR_FILING = "ITR_FILING"

ATTRIBUTE_LABELS = {
    LogicalAttribute.NAME: "Full Name",
    LogicalAttribute.EMAIL: "Email Address",
    LogicalAttribute.MOBILE_NUMBER: "Mobile Number",
    LogicalAttribute.AADHAR_ID: "Aadhaar Number",
    LogicalAttribute.PAN_ID: "PAN Number",
}


def _attr(attribute: LogicalAttribute, description: str) -> AttributeMeta:
    return AttributeMeta(
        id=attribute,
        label=ATTRIBUTE_LABELS[attribute],
        description=description,
    )


PURPOSES = {
    MARKETING_COMMUNICATIONS: PurposeMeta(
        id=MARKETING_COMMUNICATIONS,
        name="Marketing Communications",
        description="Send you marketing emails and promotional offers",
        notice=(
            "We will use your personal data to send you relevant marketing "
            "communications. You can withdraw this consent at any time."
        ),
        attributes=[
            _attr(LogicalAttribute.NAME, "Used to personalize communications"),
            _attr(LogicalAttribute.EMAIL, "Used to send marketing emails"),
            _attr(LogicalAttribute.MOBILE_NUMBER, "Used to send SMS notifications"),
        ],
    ),
    ITR_FILING: PurposeMeta(
        id=ITR_FILING,
        name="ITR Filing Services",
        description="File your Income Tax Return using our secure platform",
        notice=(
            "We will use your personal and tax-related data to assist with "
            "your ITR filing in compliance with DPDP regulations. Your data "
            "is encrypted and protected."
        ),
        attributes=[
            _attr(LogicalAttribute.NAME, "Required for ITR filing"),
            _attr(LogicalAttribute.EMAIL, "For filing confirmations and updates"),
            _attr(LogicalAttribute.MOBILE_NUMBER, "For OTP and two-factor authentication"),
            _attr(LogicalAttribute.AADHAR_ID, "Required for ITR filing verification"),
            _attr(LogicalAttribute.PAN_ID, "Required for ITR filing identification"),
        ],
    ),
}

ITR_REQUIRED_ATTRIBUTES = [attr.value for attr in LogicalAttribute]


def get_purpose(purpose_id: str) -> Optional[PurposeMeta]:
    return PURPOSES.get(purpose_id)


def attributes_for(purpose_id: str) -> list[AttributeMeta]:
    """
    Attributes a consent for ``purpose_id`` may resolve to.

    Purposes missing from the catalog resolve against every logical
    attribute.
    """
    purpose = get_purpose(purpose_id)
    if purpose:
        return purpose.attributes
    return [
        AttributeMeta(id=attribute, label=label)
        for attribute, label in ATTRIBUTE_LABELS.items()
    ]
