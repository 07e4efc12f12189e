"""
Rate limiting.

- Uses the id token subject when signed in
- Falls back to IP address for anonymous requests
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from myitreturn.common.audit_logger import AuditEventType, audit_request
from myitreturn.common.logger import get_logger
from myitreturn.core.config import settings
from myitreturn.core.security import decode_id_token_claims, get_token_set

logger = get_logger(__name__)


def user_or_ip(request: Request) -> str:
    """
    Generate rate-limiting key.

    Priority:
    1. Signed-in subject (id token sub)
    2. Client IP address
    3. Fallback anonymous key
    """
    token_set = get_token_set(request) if "session" in request.scope else None
    if token_set:
        subject = decode_id_token_claims(token_set.get("id_token")).get("sub")
        if subject:
            return f"user:{subject}"

    ip = get_remote_address(request)
    return f"ip:{ip}" if ip else "anonymous"


limiter = Limiter(
    key_func=user_or_ip,
    default_limits=["100/minute"],
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
):
    """
    Custom response when rate limit is exceeded.
    """
    logger.warning(
        "Rate limit exceeded",
        extra={"path": request.url.path, "key": user_or_ip(request)},
    )
    audit_request(
        request,
        AuditEventType.RATE_LIMIT_EXCEEDED,
        details={"path": request.url.path},
        success=False,
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down.",
        },
    )
