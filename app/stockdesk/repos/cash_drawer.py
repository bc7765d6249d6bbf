from __future__ import annotations

from sqlalchemy import select

from app.stockdesk.db.models import CashDrawerMovement, CashDrawerSession


class CashDrawerRepository:
    def __init__(self, db):
        self.db = db

    def get_open_session(self, tenant_id: str, register: str, *, for_update: bool = False) -> CashDrawerSession | None:
        query = select(CashDrawerSession).where(
            CashDrawerSession.tenant_id == tenant_id,
            CashDrawerSession.register == register,
            CashDrawerSession.status == "OPEN",
        )
        if for_update:
            query = query.with_for_update()
        return self.db.execute(query).scalars().first()

    def get_session(self, session_id, tenant_id: str) -> CashDrawerSession | None:
        query = select(CashDrawerSession).where(
            CashDrawerSession.id == session_id,
            CashDrawerSession.tenant_id == tenant_id,
        )
        return self.db.execute(query).scalars().first()

    def get_latest_session(self, tenant_id: str, register: str) -> CashDrawerSession | None:
        query = (
            select(CashDrawerSession)
            .where(CashDrawerSession.tenant_id == tenant_id, CashDrawerSession.register == register)
            .order_by(CashDrawerSession.opened_at.desc())
            .limit(1)
        )
        return self.db.execute(query).scalars().first()

    def list_closed_sessions(self, tenant_id: str, register: str, limit: int) -> list[CashDrawerSession]:
        query = (
            select(CashDrawerSession)
            .where(
                CashDrawerSession.tenant_id == tenant_id,
                CashDrawerSession.register == register,
                CashDrawerSession.status == "CLOSED",
            )
            .order_by(CashDrawerSession.closed_at.desc())
            .limit(limit)
        )
        return self.db.execute(query).scalars().all()

    def list_movements(self, session_id, *, limit: int | None = None) -> list[CashDrawerMovement]:
        query = (
            select(CashDrawerMovement)
            .where(CashDrawerMovement.session_id == session_id)
            .order_by(CashDrawerMovement.created_at.desc(), CashDrawerMovement.id.asc())
        )
        if limit:
            query = query.limit(limit)
        return self.db.execute(query).scalars().all()

    def add_movement(
        self,
        session: CashDrawerSession,
        *,
        user_id,
        action: str,
        amount: float,
        expected_before: float,
        expected_after: float,
        created_at,
        sale_id=None,
        reference: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> CashDrawerMovement:
        """Stage a drawer movement; the caller owns the commit."""
        movement = CashDrawerMovement(
            tenant_id=session.tenant_id,
            session_id=session.id,
            user_id=user_id,
            action=action,
            amount=amount,
            expected_balance_before=expected_before,
            expected_balance_after=expected_after,
            sale_id=sale_id,
            reference=reference,
            reason=reason,
            notes=notes,
            created_at=created_at,
        )
        self.db.add(movement)
        return movement
