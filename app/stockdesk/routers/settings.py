from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, Request

from app.stockdesk.core.deps import get_current_token_data, require_permission
from app.stockdesk.core.money import money
from app.stockdesk.core.scope import resolve_tenant_id
from app.stockdesk.db.models import TenantSettings
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.settings import TenantSettingsRepository
from app.stockdesk.schemas.errors import COMMON_ERROR_RESPONSES
from app.stockdesk.schemas.settings import BusinessSettingsResponse, BusinessSettingsUpdateRequest
from app.stockdesk.services.audit import AuditEventPayload, AuditService
from app.stockdesk.services.tenant_settings import BusinessSettings, default_business_settings, get_business_settings

router = APIRouter(responses=COMMON_ERROR_RESPONSES)


def _settings_response(business: BusinessSettings) -> BusinessSettingsResponse:
    payload = asdict(business)
    payload["tax_rate"] = money(business.tax_rate)
    return BusinessSettingsResponse(**payload)


@router.get("/api/settings", response_model=BusinessSettingsResponse)
def get_settings(
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_SETTINGS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    return _settings_response(get_business_settings(db, scoped_tenant_id))


@router.put("/api/settings", response_model=BusinessSettingsResponse)
def update_settings(
    request: Request,
    payload: BusinessSettingsUpdateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_SETTINGS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    repo = TenantSettingsRepository(db)
    row = repo.get_by_tenant_id(scoped_tenant_id)
    before = asdict(get_business_settings(db, scoped_tenant_id))
    if row is None:
        defaults = default_business_settings()
        row = TenantSettings(
            tenant_id=scoped_tenant_id,
            tax_rate=float(defaults.tax_rate),
            currency=defaults.currency,
            low_stock_threshold=defaults.low_stock_threshold,
            track_inventory=defaults.track_inventory,
        )

    changes = payload.model_dump(exclude_unset=True)
    for field in ("tax_rate", "currency", "low_stock_threshold", "track_inventory"):
        if field in changes and changes[field] is None:
            changes.pop(field)
    for field, value in changes.items():
        if field == "tax_rate":
            value = float(value)
        setattr(row, field, value)
    row.updated_at = datetime.utcnow()
    repo.update(row)

    business = get_business_settings(db, scoped_tenant_id)
    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=scoped_tenant_id,
            user_id=str(current_user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=current_user.username,
            action="settings.update",
            entity_type="tenant_settings",
            entity_id=str(row.id),
            before={key: str(value) for key, value in before.items()},
            after={key: str(value) for key, value in asdict(business).items()},
            metadata={"fields": sorted(changes.keys())},
            result="success",
            actor_role=current_user.role,
        )
    )
    return _settings_response(business)
