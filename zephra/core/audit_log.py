"""Security audit trail.

Events are written to the security_audit_log table with the service-role
Supabase client, outside the request's database session, so an audit entry
survives a rolled-back request. Writing an audit entry never fails the
request: errors fall back to the application log.
"""

import asyncio
import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fastapi import Request

from zephra.core.error_handler import redact
from zephra.core.rate_limit import get_client_ip
from zephra.services.supabase import get_supabase_admin_client

logger = logging.getLogger(__name__)

AUDIT_TABLE = "security_audit_log"


class SecurityEventType(str, Enum):
    WEBHOOK_RECEIVED = "webhook_received"
    WEBHOOK_VALIDATION_FAILED = "webhook_validation_failed"
    WEBHOOK_SIGNATURE_INVALID = "webhook_signature_invalid"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SUSPICIOUS_REQUEST = "suspicious_request"
    UNAUTHORIZED_ACCESS = "unauthorized_access"


class SecuritySeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def build_security_event(
    event_type: SecurityEventType,
    severity: SecuritySeverity,
    message: str,
    request: Request | None = None,
    metadata: dict[str, Any] | None = None,
    user_id: str | None = None,
) -> dict[str, Any]:
    """Assemble the audit row, pulling source details from the request when given."""
    record: dict[str, Any] = {
        "event_type": event_type.value,
        "severity": severity.value,
        "message": redact(message),
        "user_id": user_id,
        "metadata": metadata or {},
        "created_at": datetime.now(UTC).isoformat(),
    }
    if request is not None:
        record.update(
            {
                "source_ip": get_client_ip(request),
                "user_agent": request.headers.get("user-agent"),
                "request_id": getattr(request.state, "request_id", None),
                "path": request.url.path,
                "method": request.method,
            }
        )
    return record


def _insert_event(record: dict[str, Any]) -> None:
    client = get_supabase_admin_client()
    client.table(AUDIT_TABLE).insert(record).execute()


async def log_security_event(
    event_type: SecurityEventType,
    severity: SecuritySeverity,
    message: str,
    request: Request | None = None,
    metadata: dict[str, Any] | None = None,
    user_id: str | None = None,
) -> None:
    """Record a security event. Never raises."""
    record = build_security_event(event_type, severity, message, request, metadata, user_id)

    if severity == SecuritySeverity.CRITICAL:
        logger.error(f"CRITICAL security event {event_type.value}: {record['message']}")

    try:
        await asyncio.to_thread(_insert_event, record)
    except Exception as e:
        logger.warning(
            f"Failed to persist security event {event_type.value} "
            f"({severity.value}: {record['message']}): {redact(str(e))}"
        )


async def log_webhook_event(
    event_type: str,
    success: bool,
    request: Request | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Audit a received webhook (low severity) or a failed one (high severity)."""
    if success:
        await log_security_event(
            SecurityEventType.WEBHOOK_RECEIVED,
            SecuritySeverity.LOW,
            f"Webhook received: {event_type}",
            request,
            metadata,
        )
    else:
        await log_security_event(
            SecurityEventType.WEBHOOK_VALIDATION_FAILED,
            SecuritySeverity.HIGH,
            f"Webhook processing failed: {event_type}",
            request,
            metadata,
        )
