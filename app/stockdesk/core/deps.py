from fastapi import Depends, Request
from jose import JWTError
from pydantic import ValidationError

from app.stockdesk.core.context import RequestContext, build_request_context, get_request_context
from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.security import TokenData, decode_token, oauth2_scheme
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.users import UserRepository
from app.stockdesk.services.rbac import has_permission


def get_current_token_data(token: str = Depends(oauth2_scheme)) -> TokenData:
    try:
        payload = decode_token(token)
        return TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def get_current_user(token_data: TokenData = Depends(get_current_token_data), db=Depends(get_db)):
    if not token_data.sub:
        raise AppError(ErrorCatalog.INVALID_TOKEN)

    user = UserRepository(db).get_by_id(token_data.sub)
    if user is None:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    # Tenant scoping reads the role off the token; the stored role wins.
    token_data.role = user.role
    return user


def require_active_user(user=Depends(get_current_user)):
    if not user.is_active or user.status != "active":
        raise AppError(ErrorCatalog.USER_INACTIVE)
    return user


def require_request_context(
    request: Request,
    token_data: TokenData = Depends(get_current_token_data),
) -> RequestContext:
    context = build_request_context(
        user_id=token_data.sub,
        tenant_id=token_data.tenant_id,
        role=token_data.role,
        trace_id=getattr(request.state, "trace_id", ""),
    )
    request.state.context = context
    return context


def require_permission(permission_key: str):
    # The stored role wins over the token claim so demotions apply immediately.
    def dependency(user=Depends(require_active_user)):
        if not has_permission(user.role, permission_key):
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"permission": permission_key})
        return user

    return dependency


__all__ = [
    "get_current_token_data",
    "get_current_user",
    "require_active_user",
    "require_request_context",
    "get_request_context",
    "require_permission",
]
