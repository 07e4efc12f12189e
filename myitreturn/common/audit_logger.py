"""
DPDP audit logging.

Records authentication, registration and consent events with the
request context captured by AuditMiddleware.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request

from myitreturn.common.logger import get_logger

logger = get_logger("myitreturn.audit")


class AuditEventType(str, Enum):
    """Types of auditable events."""

    # Authentication
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    AUTH_FAILED = "auth_failed"

    # Registration
    REGISTRATION_COMPLETED = "registration_completed"

    # Consent Management
    CONSENT_ACCESSED = "consent_accessed"
    CONSENT_UPDATED = "consent_updated"

    # ITR filing
    ITR_FILED = "itr_filed"
    ITR_BLOCKED = "itr_blocked"

    # Security Events
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


class AuditLogger:
    """
    Audit logger.

    Every event carries a UTC timestamp, the acting subject (when known)
    and the client address.
    """

    @staticmethod
    def log_event(
        event_type: AuditEventType,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        success: bool = True,
    ) -> Dict[str, Any]:
        """
        Emit an audit event.

        Returns:
            Dict: The audit entry that was logged.
        """
        entry = {
            "event_type": event_type.value,
            "user_id": user_id,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "details": details or {},
            "success": success,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if success:
            logger.info(f"Audit event: {event_type.value}", extra=entry)
        else:
            logger.warning(f"Audit event: {event_type.value}", extra=entry)

        return entry


def audit_request(
    request: Request,
    event_type: AuditEventType,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = True,
) -> Dict[str, Any]:
    """Log an audit event using the request context."""
    return AuditLogger.log_event(
        event_type=event_type,
        user_id=user_id,
        ip_address=getattr(request.state, "ip_address", None),
        user_agent=getattr(request.state, "user_agent", None),
        details=details,
        success=success,
    )
