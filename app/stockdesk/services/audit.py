"""Audit trail for catalog, sales, drawer, user and settings changes.

Events are written after the business change has been committed and in their
own commit, so a failed audit write is logged and never fails the request.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from app.stockdesk.core.logging import log_json
from app.stockdesk.db.models import AuditEvent
from app.stockdesk.repos.audit import AuditRepository

logger = logging.getLogger(__name__)


@dataclass
class AuditEventPayload:
    tenant_id: str
    user_id: str | None
    trace_id: str | None
    actor: str
    action: str
    entity_type: str | None
    entity_id: str | None
    before: dict | None
    after: dict | None
    metadata: dict | None
    result: str
    actor_role: str | None = None

    def to_event(self) -> AuditEvent:
        metadata = {"actor_role": self.actor_role, **(self.metadata or {})}
        return AuditEvent(
            tenant_id=self.tenant_id,
            user_id=self.user_id,
            trace_id=self.trace_id,
            actor=self.actor,
            action=self.action,
            entity_type=self.entity_type or "unknown",
            entity_id=self.entity_id,
            before_payload=self.before,
            after_payload=self.after,
            event_metadata=metadata,
            result=self.result,
            created_at=datetime.utcnow(),
        )


class AuditService:
    def __init__(self, db):
        self.repo = AuditRepository(db)

    def record_event(self, payload: AuditEventPayload) -> None:
        try:
            self.repo.create(payload.to_event())
        except Exception as exc:
            self.repo.db.rollback()
            log_json(
                logger,
                {
                    "event": "audit_write_failed",
                    "action": payload.action,
                    "entity_type": payload.entity_type,
                    "entity_id": payload.entity_id,
                    "tenant_id": payload.tenant_id,
                    "trace_id": payload.trace_id,
                    "error_class": exc.__class__.__name__,
                },
                level=logging.ERROR,
            )
