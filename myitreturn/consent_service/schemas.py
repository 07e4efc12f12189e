"""
Schemas for consent management.
"""

from enum import Enum, IntEnum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ConsentState(IntEnum):
    """
    Consent state codes used by the privacy API.
    """

    GRANTED = 1
    DENIED = 2
    OPT_IN = 3
    OPT_OUT = 4
    TRANSPARENT = 5

    @property
    def label(self) -> str:
        return _STATE_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> Optional["ConsentState"]:
        """
        Coerce a raw state value into a ConsentState.

        Accepts wire codes (``1``-``5``, also as strings), member names
        (``"granted"``, ``"opt-in"``) and booleans. Returns None for anything
        else.
        """
        if isinstance(value, bool):
            return cls.GRANTED if value else cls.DENIED

        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return None

        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls.parse(int(text))
            key = text.upper().replace("-", "_").replace(" ", "_")
            return cls.__members__.get(key)

        return None


_STATE_LABELS = {
    ConsentState.GRANTED: "Granted",
    ConsentState.DENIED: "Denied",
    ConsentState.OPT_IN: "Opt-in",
    ConsentState.OPT_OUT: "Opt-out",
    ConsentState.TRANSPARENT: "Transparent",
}


def format_consent_state(state: Any) -> str:
    """Human-readable label for a raw state value."""
    parsed = ConsentState.parse(state)
    return parsed.label if parsed else "Unknown"


class LogicalAttribute(str, Enum):
    """Canonical personal-data fields, independent of tenant naming."""

    NAME = "name"
    EMAIL = "email"
    MOBILE_NUMBER = "mobile_number"
    AADHAR_ID = "aadhar_id"
    PAN_ID = "pan_id"


class AttributeMeta(BaseModel):
    id: LogicalAttribute
    label: str
    description: str = ""


class PurposeMeta(BaseModel):
    id: str
    name: str
    description: str
    notice: str
    attributes: list[AttributeMeta]

    @property
    def attribute_ids(self) -> list[str]:
        return [attr.id.value for attr in self.attributes]

    def label_for(self, attribute_id: str) -> str:
        for attr in self.attributes:
            if attr.id.value == attribute_id:
                return attr.label
        return attribute_id


class ConsentRecord(BaseModel):
    """
    A single (purpose, attribute, state) consent value.
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    purpose_id: str = Field(alias="purposeId")
    attribute_id: str = Field(alias="attributeId")
    state: ConsentState
    access_type_id: str = Field(default="default", alias="accessTypeId")


class ConsentUpdate(BaseModel):
    """
    Toggle request sent by the consent management page.

    ``state`` is ``true``/``1`` to grant; anything else denies.
    """

    model_config = ConfigDict(populate_by_name=True)

    purpose_id: str = Field(default="", alias="purposeId")
    attribute_id: str = Field(default="", alias="attributeId")
    state: Union[bool, int, str, None] = None

    @property
    def consent_state(self) -> ConsentState:
        if self.state is True or (
            isinstance(self.state, int) and not isinstance(self.state, bool) and self.state == 1
        ):
            return ConsentState.GRANTED
        return ConsentState.DENIED
