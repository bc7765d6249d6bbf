from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.security import TokenData
from app.stockdesk.services.rbac import normalize_role


SUPERADMIN_ROLES = {"SUPERADMIN"}


def is_superadmin(role: str | None) -> bool:
    return normalize_role(role) in SUPERADMIN_ROLES


def resolve_tenant_id(token_data: TokenData, tenant_id: str | None = None) -> str:
    """Return the tenant a request operates on.

    Superadmins may target any tenant explicitly; everyone else is pinned to
    the tenant in their token. ``get_current_user`` refreshes ``role`` from
    the stored user before this runs.
    """
    if not token_data.tenant_id:
        raise AppError(ErrorCatalog.TENANT_SCOPE_REQUIRED)
    if not tenant_id or tenant_id == token_data.tenant_id:
        return token_data.tenant_id
    if is_superadmin(token_data.role):
        return tenant_id
    raise AppError(ErrorCatalog.CROSS_TENANT_ACCESS_DENIED)
