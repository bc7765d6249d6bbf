from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from app.stockdesk.core.config import settings
from app.stockdesk.core.deps import get_current_token_data, require_active_user, require_permission
from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.metrics import metrics
from app.stockdesk.core.money import money, optional_money
from app.stockdesk.core.scope import resolve_tenant_id
from app.stockdesk.db.models import CashDrawerMovement, CashDrawerSession
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.cash_drawer import CashDrawerRepository
from app.stockdesk.repos.transactions import TransactionRepository
from app.stockdesk.schemas.cash_drawer import (
    CashDrawerActionRequest,
    CashDrawerActionResponse,
    CashDrawerResponse,
    DenominationEntry,
    DenominationListResponse,
    DrawerHistoryEntry,
    DrawerMovementEntry,
    DrawerSessionSummary,
    DrawerStatus,
)
from app.stockdesk.schemas.errors import COMMON_ERROR_RESPONSES
from app.stockdesk.services.audit import AuditEventPayload, AuditService
from app.stockdesk.services.cash_count import DENOMINATIONS, count_total, normalize_counts, reconcile
from app.stockdesk.services.idempotency import begin_idempotent_request, replay_response
from app.stockdesk.services.rbac import has_permission
from app.stockdesk.services.sales import CARD_METHODS

router = APIRouter(responses=COMMON_ERROR_RESPONSES)

ACTION_PERMISSIONS = {
    "open": "OPEN_REGISTER",
    "payout": "PERFORM_PAYOUTS",
    "cash_in": "PERFORM_PAYOUTS",
    "close": "CLOSE_REGISTER",
}
OUTFLOW_ACTIONS = {"PAYOUT", "CASH_REFUND"}
RECENT_MOVEMENTS_LIMIT = 50
HISTORY_LIMIT = 10
ZERO = Decimal("0.00")


def _drawer_status(db, register: str, session: CashDrawerSession | None) -> DrawerStatus:
    if session is None:
        return DrawerStatus(
            is_open=False,
            register_name=register,
            session_id=None,
            opened_at=None,
            opened_by=None,
            opening_balance=ZERO,
            current_balance=ZERO,
            cash_sales=ZERO,
            card_sales=ZERO,
            mobile_sales=ZERO,
            cash_payouts=ZERO,
            cash_in=ZERO,
            cash_refunds=ZERO,
            expected_amount=ZERO,
        )

    sums: dict[str, Decimal] = {}
    for movement in CashDrawerRepository(db).list_movements(session.id):
        sums[movement.action] = sums.get(movement.action, ZERO) + money(movement.amount)
    by_method = TransactionRepository(db).session_totals_by_method(session.id)
    card_sales = sum((money(by_method.get(method, 0)) for method in CARD_METHODS), ZERO)
    expected = money(session.expected_cash)
    is_open = session.status == "OPEN"
    return DrawerStatus(
        is_open=is_open,
        register_name=session.register,
        session_id=str(session.id),
        opened_at=session.opened_at,
        opened_by=session.opened_by_name,
        opening_balance=money(session.opening_amount),
        current_balance=expected if is_open else money(session.counted_cash),
        cash_sales=sums.get("CASH_SALE", ZERO),
        card_sales=card_sales,
        mobile_sales=money(by_method.get("mobile", 0)),
        cash_payouts=sums.get("PAYOUT", ZERO),
        cash_in=sums.get("CASH_IN", ZERO),
        cash_refunds=sums.get("CASH_REFUND", ZERO),
        expected_amount=expected,
    )


def _movement_entry(movement: CashDrawerMovement) -> DrawerMovementEntry:
    amount = money(movement.amount)
    if movement.action in OUTFLOW_ACTIONS:
        amount = -amount
    return DrawerMovementEntry(
        id=str(movement.id),
        date=movement.created_at,
        type=movement.action.lower(),
        amount=amount,
        reference=movement.reference,
        notes=movement.reason or movement.notes,
    )


def _history_entry(session: CashDrawerSession) -> DrawerHistoryEntry:
    result = reconcile(money(session.expected_cash), money(session.counted_cash))
    return DrawerHistoryEntry(
        id=str(session.id),
        date=session.closed_at or session.opened_at,
        opened_at=session.opened_at,
        closed_at=session.closed_at,
        opening_balance=money(session.opening_amount),
        closing_balance=result.counted,
        expected_amount=result.expected,
        difference=result.difference,
        status=result.status,
        cashier=session.opened_by_name,
        denominations=session.closing_denominations,
    )


def _session_summary(session: CashDrawerSession) -> DrawerSessionSummary:
    status = None
    if session.counted_cash is not None:
        status = reconcile(money(session.expected_cash), money(session.counted_cash)).status
    return DrawerSessionSummary(
        id=str(session.id),
        register_name=session.register,
        status=session.status,
        opening_balance=money(session.opening_amount),
        expected_amount=money(session.expected_cash),
        counted_amount=optional_money(session.counted_cash),
        difference=optional_money(session.difference),
        reconciliation_status=status,
        opening_denominations=session.opening_denominations,
        closing_denominations=session.closing_denominations,
        opened_at=session.opened_at,
        closed_at=session.closed_at,
    )


def _positive_amount(value: Decimal | None, field: str = "amount") -> Decimal:
    if value is None:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": f"{field} is required"})
    if value <= 0:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": f"{field} must be greater than 0"})
    return money(value)


def _counted_amount(payload: CashDrawerActionRequest) -> tuple[Decimal, dict[str, int] | None]:
    """Cash on hand from a denomination count, falling back to a plain amount."""
    if payload.denominations is not None:
        total = count_total(payload.denominations)
        return total, normalize_counts(payload.denominations)
    if payload.amount is None:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "amount or denominations is required"})
    if payload.amount < 0:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "amount must not be negative"})
    return money(payload.amount), None


@router.get("/api/cash-drawer", response_model=CashDrawerResponse)
def get_cash_drawer(
    register: str | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("PROCESS_SALES")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    register = register or settings.DEFAULT_REGISTER_NAME
    repo = CashDrawerRepository(db)
    session = repo.get_open_session(scoped_tenant_id, register) or repo.get_latest_session(scoped_tenant_id, register)
    movements = repo.list_movements(session.id, limit=RECENT_MOVEMENTS_LIMIT) if session else []
    history = repo.list_closed_sessions(scoped_tenant_id, register, HISTORY_LIMIT)
    return CashDrawerResponse(
        drawer_status=_drawer_status(db, register, session),
        transactions=[_movement_entry(movement) for movement in movements],
        history=[_history_entry(row) for row in history],
    )


@router.get("/api/cash-drawer/denominations", response_model=DenominationListResponse)
def list_denominations(_user=Depends(require_active_user)):
    return DenominationListResponse(
        denominations=[DenominationEntry(name=name, value=value) for name, value in DENOMINATIONS]
    )


@router.post("/api/cash-drawer", response_model=CashDrawerActionResponse)
def cash_drawer_action(
    request: Request,
    payload: CashDrawerActionRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    db=Depends(get_db),
):
    action = payload.action.strip().lower()
    if action not in ACTION_PERMISSIONS:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "unsupported action", "allowed": sorted(ACTION_PERMISSIONS)},
        )
    permission = ACTION_PERMISSIONS[action]
    if not has_permission(current_user.role, permission):
        raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"permission": permission})
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    register = payload.register_name or settings.DEFAULT_REGISTER_NAME

    context, replay = begin_idempotent_request(
        request, db, tenant_id=scoped_tenant_id, payload=payload.model_dump(mode="json")
    )
    if replay is not None:
        return replay_response(replay)

    repo = CashDrawerRepository(db)
    now = datetime.utcnow()
    session = repo.get_open_session(scoped_tenant_id, register, for_update=True)

    if action == "open":
        if session is not None:
            raise AppError(
                ErrorCatalog.DRAWER_ALREADY_OPEN,
                details={"register": register, "session_id": str(session.id)},
            )
        opening_amount, breakdown = _counted_amount(payload)
        session = CashDrawerSession(
            tenant_id=scoped_tenant_id,
            register=register,
            status="OPEN",
            business_date=now.date(),
            opened_by_user_id=current_user.id,
            opened_by_name=current_user.full_name or current_user.username,
            opening_amount=float(opening_amount),
            expected_cash=float(opening_amount),
            opening_denominations=breakdown,
            opened_at=now,
            created_at=now,
        )
        db.add(session)
        try:
            db.flush()
        except IntegrityError as exc:
            # Another request opened this register after the lookup above.
            db.rollback()
            raise AppError(ErrorCatalog.DRAWER_ALREADY_OPEN, details={"register": register}) from exc
        expected_before = ZERO
        expected_after = opening_amount
        amount = opening_amount
        before = {"status": "CLOSED"}
    else:
        if session is None:
            raise AppError(ErrorCatalog.DRAWER_NOT_OPEN, details={"register": register})
        expected_before = money(session.expected_cash)
        before = {"status": session.status, "expected_cash": str(expected_before)}
        if action == "payout":
            amount = _positive_amount(payload.amount)
            if not (payload.reason and payload.reason.strip()):
                raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "reason is required for payouts"})
            expected_after = expected_before - amount
            if expected_after < 0:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={
                        "message": "payout would result in negative expected balance",
                        "expected_cash": str(expected_before),
                    },
                )
            session.expected_cash = float(expected_after)
        elif action == "cash_in":
            amount = _positive_amount(payload.amount)
            expected_after = expected_before + amount
            session.expected_cash = float(expected_after)
        else:
            amount, breakdown = _counted_amount(payload)
            result = reconcile(expected_before, amount)
            expected_after = expected_before
            session.counted_cash = float(result.counted)
            session.difference = float(result.difference)
            session.closing_denominations = breakdown
            session.status = "CLOSED"
            session.closed_at = now
            session.closed_by_user_id = current_user.id

    repo.add_movement(
        session,
        user_id=current_user.id,
        action=action.upper(),
        amount=float(amount),
        expected_before=float(expected_before),
        expected_after=float(expected_after),
        created_at=now,
        reference=payload.reference,
        reason=payload.reason,
        notes=payload.notes,
    )
    db.commit()
    db.refresh(session)

    response = CashDrawerActionResponse(action=action, amount=amount, session=_session_summary(session))
    if context is not None:
        context.record_success(status_code=200, response_body=response.model_dump(mode="json", by_alias=True))
    metrics.record_cash_drawer_action(action)
    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=scoped_tenant_id,
            user_id=str(current_user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=current_user.username,
            action=f"cash_drawer.{action}",
            entity_type="cash_drawer_session",
            entity_id=str(session.id),
            before=before,
            after={
                "status": session.status,
                "expected_cash": str(money(session.expected_cash)),
                "counted_cash": str(money(session.counted_cash)) if session.counted_cash is not None else None,
                "difference": str(money(session.difference)) if session.difference is not None else None,
            },
            metadata={"register": register, "amount": str(amount), "reason": payload.reason},
            result="success",
            actor_role=current_user.role,
        )
    )
    return response
