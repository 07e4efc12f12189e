"""
Session security utilities.

Handles the OIDC token set kept in the cookie session and reads
id token claims.
"""

import secrets
from typing import Any, Dict, Optional

from fastapi import Request
from jose import JWTError, jwt

from myitreturn.common.logger import get_logger

logger = get_logger(__name__)

TOKEN_SET_KEY = "token_set"
AUTH_STATE_KEY = "auth_state"
POST_LOGIN_REDIRECT_KEY = "post_login_redirect"


def new_state_token() -> str:
    """Generate a state token for CSRF protection of the login redirect."""
    return secrets.token_urlsafe(32)


def get_token_set(request: Request) -> Optional[Dict[str, Any]]:
    token_set = request.session.get(TOKEN_SET_KEY)
    return token_set if isinstance(token_set, dict) and token_set else None


def is_logged_in(request: Request) -> bool:
    return get_token_set(request) is not None


def decode_id_token_claims(id_token: Optional[str]) -> Dict[str, Any]:
    """
    Read the claims of an id token.

    The token was issued over the back channel and is not re-verified here.

    Returns:
        Dict: Claims, or an empty dict for a missing or malformed token.
    """
    if not id_token:
        return {}

    try:
        return jwt.get_unverified_claims(id_token)

    except JWTError as exc:
        logger.warning(
            "Unable to decode id token",
            extra={"error": str(exc)},
        )
        return {}
