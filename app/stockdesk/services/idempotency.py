import hashlib
import json
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.metrics import metrics
from app.stockdesk.db.models import IdempotencyRecord
from app.stockdesk.repos.idempotency import STATE_IN_PROGRESS, IdempotencyRepository, RequestScope


IDEMPOTENCY_HEADER = "Idempotency-Key"


@dataclass
class IdempotencyReplay:
    status_code: int
    response_body: dict


class IdempotencyContext:
    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository):
        self._record = record
        self._repo = repo

    def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._finish("succeeded", status_code, response_body)

    def record_failure(self, *, status_code: int, response_body: dict) -> None:
        # Drop whatever the failed request staged before persisting the outcome.
        self._repo.db.rollback()
        self._finish("failed", status_code, response_body)

    def _finish(self, state: str, status_code: int, response_body: dict) -> None:
        self._repo.save_outcome(
            self._record,
            state=state,
            status_code=status_code,
            response_body=json.dumps(response_body, default=str),
        )


class IdempotencyService:
    def __init__(self, db):
        self.repo = IdempotencyRepository(db)

    @staticmethod
    def fingerprint(payload: object) -> str:
        payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload_bytes).hexdigest()

    def start(
        self,
        *,
        tenant_id: str,
        endpoint: str,
        method: str,
        idempotency_key: str,
        request_hash: str,
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        scope = RequestScope(tenant_id, endpoint, method, idempotency_key)
        existing = self.repo.find(scope)
        if existing:
            return self._handle_existing(existing, request_hash)

        try:
            record = self.repo.claim(scope, request_hash)
        except IntegrityError:
            # Lost the race for this key to a concurrent request.
            self.repo.db.rollback()
            return self._handle_existing(self.repo.find(scope), request_hash)

        return IdempotencyContext(record, self.repo), None

    def _handle_existing(
        self, existing: IdempotencyRecord | None, request_hash: str
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        if existing is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.request_hash != request_hash:
            raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD)
        if existing.state == STATE_IN_PROGRESS:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.response_body is None or existing.status_code is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        return None, IdempotencyReplay(status_code=existing.status_code, response_body=json.loads(existing.response_body))


def extract_idempotency_key(headers) -> str | None:
    key = headers.get(IDEMPOTENCY_HEADER)
    return key.strip() if key and key.strip() else None


def begin_idempotent_request(request: Request, db, *, tenant_id: str, payload: dict):
    """Start tracking a mutation that carries an ``Idempotency-Key``.

    Returns ``(context, replay)``. Both are None when the request has no key;
    otherwise exactly one is set.
    """
    idempotency_key = extract_idempotency_key(request.headers)
    if not idempotency_key:
        return None, None
    context, replay = IdempotencyService(db).start(
        tenant_id=tenant_id,
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if context is not None:
        request.state.idempotency = context
    return context, replay


def replay_response(replay: IdempotencyReplay) -> JSONResponse:
    metrics.increment_idempotency_replay()
    return JSONResponse(
        status_code=replay.status_code,
        content=replay.response_body,
        headers={"X-Idempotency-Result": ErrorCatalog.IDEMPOTENCY_REPLAY.code},
    )
