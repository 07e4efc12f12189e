"""
Server-side page rendering.

Jinja2 environment and display filters shared by the page routes.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.templating import Jinja2Templates

from myitreturn.consent_service.schemas import format_consent_state

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


def format_purpose(purpose_name: str, version: Any = None) -> str:
    if purpose_name == "ibm-oauth-scope":
        return "OAuth Scope"
    return f"{purpose_name} (Version {version})"


def format_date(epoch_seconds: Any) -> str:
    """Format an epoch-seconds timestamp as a date."""
    if not isinstance(epoch_seconds, (int, float, str)):
        return ""
    try:
        return datetime.fromtimestamp(float(epoch_seconds), tz=timezone.utc).strftime("%d/%m/%Y")
    except (TypeError, ValueError, OverflowError, OSError):
        return ""


def format_access_type(access_type: Any) -> str:
    return "" if access_type == "default" else access_type


def format_attribute(attribute: Any) -> str:
    return attribute if attribute else "–"


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters.update(
    {
        "format_purpose": format_purpose,
        "format_date": format_date,
        "format_state": format_consent_state,
        "format_access_type": format_access_type,
        "format_attribute": format_attribute,
    }
)
