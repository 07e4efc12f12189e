from myitreturn.consent_service.catalog import ITR_FILING, MARKETING_COMMUNICATIONS
from myitreturn.registration_service.schemas import AccountStep, TaxIdentityStep
from myitreturn.registration_service.service import (
    add_tax_identity,
    build_account_record,
    build_registration_consents,
    mask_aadhaar,
    mask_pan,
)


def _account(**marketing):
    return AccountStep(
        full_name="Asha Rao",
        email="asha@example.com",
        mobile="9876543210",
        password="s3cretpass",
        confirm_password="s3cretpass",
        **marketing,
    )


def test_masks():
    assert mask_aadhaar("123456789012") == "********9012"
    assert mask_pan("abcde1234f") == "ABCDE****F"
    assert mask_aadhaar("") == ""
    assert mask_pan("") == ""


def test_account_record_keeps_only_password_hash():
    record = build_account_record(_account(marketing_email=True))

    assert "password" not in record
    assert record["password_hash"] != "s3cretpass"
    assert record["password_hash"].startswith("$argon2")
    assert record["marketing_consents"] == {"name": False, "email": True, "mobile": False}


def test_tax_identity_is_stored_masked():
    record = add_tax_identity(
        {"full_name": "Asha Rao"},
        TaxIdentityStep(aadhaar="123456789012", pan="ABCDE1234F"),
    )

    assert record["aadhaar"] == "********9012"
    assert record["pan"] == "ABCDE****F"
    assert "123456789012" not in record.values()


def test_registration_consents():
    record = build_account_record(_account(marketing_name=True, marketing_mobile=True))

    consents = build_registration_consents(record)

    marketing = [c for c in consents if c.purpose_id == MARKETING_COMMUNICATIONS]
    itr = [c for c in consents if c.purpose_id == ITR_FILING]

    assert [(c.attribute_id, c.state) for c in marketing] == [
        ("name", 1),
        ("email", 2),
        ("mobile_number", 1),
    ]
    assert [c.attribute_id for c in itr] == [
        "name",
        "email",
        "mobile_number",
        "aadhar_id",
        "pan_id",
    ]
    assert all(c.state == 1 for c in itr)
