from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from app.stockdesk.db.models import IdempotencyRecord

STATE_IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class RequestScope:
    """What a key is unique within: one tenant, one route, one verb."""

    tenant_id: str
    endpoint: str
    method: str
    idempotency_key: str


class IdempotencyRepository:
    def __init__(self, db):
        self.db = db

    def find(self, scope: RequestScope) -> IdempotencyRecord | None:
        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.tenant_id == scope.tenant_id,
            IdempotencyRecord.endpoint == scope.endpoint,
            IdempotencyRecord.method == scope.method,
            IdempotencyRecord.idempotency_key == scope.idempotency_key,
        )
        return self.db.execute(stmt).scalars().first()

    def claim(self, scope: RequestScope, request_hash: str) -> IdempotencyRecord:
        """Insert the in-progress marker; raises IntegrityError if the scope is taken."""
        record = IdempotencyRecord(
            tenant_id=scope.tenant_id,
            endpoint=scope.endpoint,
            method=scope.method,
            idempotency_key=scope.idempotency_key,
            request_hash=request_hash,
            state=STATE_IN_PROGRESS,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def save_outcome(self, record: IdempotencyRecord, *, state: str, status_code: int, response_body: str) -> None:
        record.state = state
        record.status_code = status_code
        record.response_body = response_body
        record.updated_at = datetime.utcnow()
        self.db.add(record)
        self.db.commit()
