# apps/api/trackhub/services/audit.py
"""
Audit Logging Service - Track-Hub
Append-only, retryable audit trail written by a Celery worker.
Logs significant actions (project created/deleted, commits pushed,
GitHub token stored, credits purchased).
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Dict, Optional

from celery import shared_task
from fastapi import Request
from sqlalchemy import insert

from trackhub.db.models import AuditLog
from trackhub.db.session import task_session
from trackhub.tasks.celery_app import celery_app  # noqa: F401  current app for shared_task
from trackhub.monitoring.metrics import background_jobs_total

logger = logging.getLogger(__name__)


async def write_audit_entry(
    session,
    action: str,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    request_id: Optional[str] = None,
    event_id: Optional[str] = None,
) -> str:
    event_id = event_id or str(uuid.uuid4())
    await session.execute(
        insert(AuditLog).values(
            event_id=event_id,
            user_id=user_id,
            action=action,
            event_metadata=metadata or {},
            ip_address=ip_address,
            user_agent=user_agent,
            request_id=request_id,
        )
    )
    return event_id


async def _persist(**fields: Any) -> None:
    async with task_session() as session:
        await write_audit_entry(session, **fields)


@shared_task(
    name="trackhub.tasks.audit_log",
    bind=True,
    max_retries=5,
    default_retry_delay=30,       # seconds
    retry_backoff=True,
    retry_jitter=True,
    acks_late=True,
)
def audit_log_task(
    self,
    action: str,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    request_id: Optional[str] = None,
    event_id: Optional[str] = None,
):
    """
    Celery task: create an audit log entry.
    Retries on DB failure; event_id is fixed before the first attempt.
    """
    event_id = event_id or str(uuid.uuid4())

    try:
        asyncio.run(
            _persist(
                action=action,
                user_id=user_id,
                metadata=metadata,
                ip_address=ip_address,
                user_agent=user_agent,
                request_id=request_id,
                event_id=event_id,
            )
        )
    except Exception as exc:
        logger.exception(
            f"Audit log failed for action '{action}' (event_id={event_id})",
        )
        raise self.retry(exc=exc)

    logger.info(
        f"AUDIT [{event_id}]: {action}",
        extra={
            "user_id": user_id,
            "audit_metadata": json.dumps(metadata or {}, default=str),
            "ip": ip_address,
            "request_id": request_id,
        },
    )


# ────────────────────────────────────────────────
# Public sync wrapper (queues Celery task)
# ────────────────────────────────────────────────
def audit_log(
    action: str,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    event_id: Optional[str] = None,
) -> None:
    """
    Queue the audit task. Never raises: a broker outage must not fail
    the request that triggered the event.

    Args:
        action: Descriptive action name (e.g. "project_created")
        user_id: Authenticated account id
        metadata: Optional dict of context (JSON-serialized)
        request: FastAPI Request (for IP, user-agent, request ID)
        event_id: Optional external trace ID (for correlation)
    """
    ip = request.client.host if request and request.client else None
    ua = request.headers.get("user-agent") if request else None
    req_id = request.headers.get("X-Request-ID") if request else None

    try:
        audit_log_task.delay(
            action=action,
            user_id=user_id,
            metadata=json.loads(json.dumps(metadata or {}, default=str)),
            ip_address=ip,
            user_agent=ua,
            request_id=req_id,
            event_id=event_id,
        )
    except Exception:
        background_jobs_total.labels(job="audit_log", outcome="enqueue_failed").inc()
        logger.error(f"Failed to enqueue audit event '{action}'", exc_info=True)
