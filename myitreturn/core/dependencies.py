"""
FastAPI authentication dependencies.

Provides the signed-in user from the session token set.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import sentry_sdk
from fastapi import Request

from myitreturn.common.logger import get_logger
from myitreturn.core.security import decode_id_token_claims, get_token_set

logger = get_logger(__name__)


class LoginRequired(Exception):
    """
    Raised when a route needs a signed-in user.

    Page routes answer with a redirect to login; JSON routes with 401.
    """

    def __init__(self, api: bool = False):
        super().__init__("Not authenticated")
        self.api = api


@dataclass
class SessionUser:
    access_token: str
    id_token: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def subject_id(self) -> Optional[str]:
        return self.claims.get("sub")

    @property
    def display_name(self) -> str:
        return (
            self.claims.get("name")
            or self.claims.get("preferred_username")
            or self.claims.get("email")
            or "User"
        )


def _session_user(request: Request) -> Optional[SessionUser]:
    token_set = get_token_set(request)
    if token_set is None:
        return None

    user = SessionUser(
        access_token=token_set.get("access_token", ""),
        id_token=token_set.get("id_token"),
        claims=decode_id_token_claims(token_set.get("id_token")),
    )
    request.state.user = user.claims

    sentry_sdk.set_user({"id": user.subject_id, "email": user.claims.get("email")})
    return user


def get_current_user(request: Request) -> SessionUser:
    """
    Retrieve the signed-in user for page routes.

    Raises:
        LoginRequired: If the session holds no token set.
    """
    user = _session_user(request)
    if user is None:
        logger.info("Unauthenticated page request", extra={"path": request.url.path})
        raise LoginRequired()
    return user


def get_current_api_user(request: Request) -> SessionUser:
    """
    Retrieve the signed-in user for JSON routes.

    Raises:
        LoginRequired: If the session holds no token set.
    """
    user = _session_user(request)
    if user is None:
        logger.warning("Unauthenticated API request", extra={"path": request.url.path})
        raise LoginRequired(api=True)
    return user
