import re

from myitreturn.consent_service.catalog import ITR_FILING
from myitreturn.itr_service.service import (
    can_file_itr,
    generate_reference_id,
    missing_labels,
)


def test_can_file_itr_checks_every_required_attribute(privacy_client, privacy_service):
    privacy_client.consents = [
        {"purposeId": ITR_FILING, "attributeId": "name", "state": 1},
        {"purposeId": ITR_FILING, "attributeId": "email", "state": 1},
        {"purposeId": ITR_FILING, "attributeId": "mobile_number", "state": 1},
        {"purposeId": ITR_FILING, "attributeId": "14", "attributeName": "Aadhaar Number", "state": 1},
    ]

    decision = can_file_itr(privacy_service, "token", "user-123")

    assert not decision.allowed
    assert decision.missing == ["pan_id"]
    assert ("get_user_consents", "token", "user-123") in privacy_client.calls


def test_can_file_itr_denies_when_unverifiable(privacy_client, privacy_service):
    privacy_client.fail = True

    decision = can_file_itr(privacy_service, "token")

    assert not decision.allowed
    assert not decision.verified


def test_missing_labels():
    assert missing_labels(["aadhar_id", "pan_id"]) == ["Aadhaar Number", "PAN Number"]


def test_reference_id_format():
    reference_id = generate_reference_id()

    assert re.fullmatch(r"ITR-[0-9A-Z]+-[0-9A-Z]{6}", reference_id)
    assert generate_reference_id() != reference_id
