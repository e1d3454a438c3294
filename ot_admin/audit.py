from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from ot_admin.models import AuditAction, AuditEntityType, AuditLog

logger = logging.getLogger("ot_admin.audit")


@dataclass(frozen=True)
class AuditMeta:
    ip: str | None = None
    user_agent: str | None = None
    route: str | None = None
    request_id: str | None = None


def audit_meta_from_request(request: Request) -> AuditMeta:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip() or None
    else:
        ip = request.client.host if request.client else None
    return AuditMeta(
        ip=ip,
        user_agent=request.headers.get("user-agent"),
        route=request.url.path,
        request_id=getattr(request.state, "request_id", None),
    )


def record_audit(
    db: Session,
    *,
    entity_type: AuditEntityType,
    entity_id: str | int,
    action: AuditAction,
    actor_id: str,
    diff: dict[str, Any] | None = None,
    meta: AuditMeta | None = None,
) -> bool:
    """Append one audit row in its own commit.

    Must be called after the mutation it describes has been committed. A
    failed write is rolled back and logged as ``audit_log_write_failed`` and
    reported through the return value; it never undoes the mutation.
    """
    meta = meta or AuditMeta()
    audit = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        entity_type=entity_type.value,
        entity_id=str(entity_id),
        action=action.value,
        actor_id=actor_id,
        diff=diff,
        ip=meta.ip,
        user_agent=meta.user_agent,
        route=meta.route,
    )
    db.add(audit)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={
                "request_id": meta.request_id,
                "entity_type": entity_type.value,
                "entity_id": str(entity_id),
                "action": action.value,
                "actor_id": actor_id,
            },
        )
        return False

    logger.info(
        "audit_event",
        extra={
            "request_id": meta.request_id,
            "entity_type": entity_type.value,
            "entity_id": str(entity_id),
            "action": action.value,
            "actor_id": actor_id,
            "route": meta.route,
        },
    )
    return True
