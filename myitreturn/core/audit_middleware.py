"""
Middleware to capture request details for audit logging.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


def client_ip(request: Request) -> str:
    # First hop of X-Forwarded-For when behind a proxy
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class AuditMiddleware(BaseHTTPMiddleware):
    """
    Captures request metadata for audit logging.

    Attaches IP address and user agent to request state.
    """

    async def dispatch(self, request: Request, call_next):
        request.state.ip_address = client_ip(request)
        request.state.user_agent = request.headers.get("User-Agent", "unknown")

        return await call_next(request)
