"""
Registration form schemas.

Field validators run in form order so the first failing rule is the one
reported back to the user.
"""

import re

from pydantic import BaseModel, ValidationError, field_validator, model_validator

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOBILE_PATTERN = re.compile(r"^\d{10}$")
AADHAAR_PATTERN = re.compile(r"^\d{12}$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8


class AccountStep(BaseModel):
    """Step 1: account information and marketing consents."""

    full_name: str = ""
    email: str = ""
    mobile: str = ""
    password: str = ""
    confirm_password: str = ""
    marketing_name: bool = False
    marketing_email: bool = False
    marketing_mobile: bool = False

    @field_validator("full_name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_NAME_LENGTH:
            raise ValueError("Full name must be at least 2 characters")
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value

    @field_validator("mobile")
    @classmethod
    def check_mobile(cls, value: str) -> str:
        digits = re.sub(r"\D", "", value)
        if not MOBILE_PATTERN.match(digits):
            raise ValueError("Please enter a valid 10-digit mobile number")
        return digits

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError("Password must be at least 8 characters")
        return value

    @model_validator(mode="after")
    def check_passwords_match(self) -> "AccountStep":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class TaxIdentityStep(BaseModel):
    """Step 2: Aadhaar and PAN."""

    aadhaar: str = ""
    pan: str = ""

    @field_validator("aadhaar")
    @classmethod
    def check_aadhaar(cls, value: str) -> str:
        value = re.sub(r"\s", "", value)
        if not AADHAAR_PATTERN.match(value):
            raise ValueError("Please enter a valid 12-digit Aadhaar number")
        return value

    @field_validator("pan")
    @classmethod
    def check_pan(cls, value: str) -> str:
        value = value.strip().upper()
        if not PAN_PATTERN.match(value):
            raise ValueError("Please enter a valid 10-character PAN number")
        return value


class ConsentStep(BaseModel):
    """Step 3: explicit opt-in for Aadhaar and PAN use."""

    aadhaar_consent: bool = False
    pan_consent: bool = False

    @model_validator(mode="after")
    def check_consents(self) -> "ConsentStep":
        if not (self.aadhaar_consent and self.pan_consent):
            raise ValueError("You must consent to Aadhaar and PAN use for ITR filing")
        return self


def first_error_message(exc: ValidationError) -> str:
    """User-facing message of the first failing rule."""
    error = exc.errors()[0]
    original = (error.get("ctx") or {}).get("error")
    return str(original) if original else error["msg"]
