from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, Request

from app.stockdesk.core.deps import require_active_user
from app.stockdesk.core.error_catalog import AppError
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.users import UserRepository
from app.stockdesk.schemas.auth import LoginRequest, MeResponse, OAuth2TokenResponse, TokenResponse
from app.stockdesk.services.audit import AuditEventPayload, AuditService
from app.stockdesk.services.auth import AuthService
from app.stockdesk.services.rbac import permissions_for_role

router = APIRouter()


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login (JSON)",
    description="Login for JSON clients using email or username_or_email.",
)
def login(request: Request, payload: LoginRequest, db=Depends(get_db)):
    service = AuthService(db)
    identifier = payload.email or payload.username_or_email
    trace_id = getattr(request.state, "trace_id", "")

    try:
        user, token = service.login(identifier, payload.password)
    except AppError as exc:
        candidates = UserRepository(db).list_by_username_or_email(identifier)
        if candidates:
            candidate = candidates[0]
            AuditService(db).record_event(
                AuditEventPayload(
                    tenant_id=str(candidate.tenant_id),
                    user_id=str(candidate.id),
                    trace_id=trace_id or None,
                    actor=identifier,
                    action="auth.login.failed",
                    entity_type="user",
                    entity_id=str(candidate.id),
                    before=None,
                    after=None,
                    metadata={"error_code": exc.error.code},
                    result="failure",
                )
            )
        raise

    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=str(user.tenant_id),
            user_id=str(user.id),
            trace_id=trace_id or None,
            actor=user.username,
            action="auth.login",
            entity_type="user",
            entity_id=str(user.id),
            before=None,
            after=None,
            metadata=None,
            result="success",
            actor_role=user.role,
        )
    )
    return TokenResponse(access_token=token, must_change_password=user.must_change_password, trace_id=trace_id)


@router.post(
    "/token",
    response_model=OAuth2TokenResponse,
    summary="OAuth2 Token (Swagger/Auth)",
    description="OAuth2 password flow endpoint for Swagger Authorize using form-data username/password.",
)
async def oauth2_token(request: Request, db=Depends(get_db)):
    raw_body = (await request.body()).decode()
    form_data = parse_qs(raw_body)
    username = (form_data.get("username") or [""])[0]
    password = (form_data.get("password") or [""])[0]

    _, token = AuthService(db).login(username, password)
    return OAuth2TokenResponse(access_token=token)


@router.get("/me", response_model=MeResponse)
def me(request: Request, current_user=Depends(require_active_user)):
    return MeResponse(
        id=str(current_user.id),
        username=current_user.username,
        email=current_user.email,
        full_name=current_user.full_name,
        tenant_id=str(current_user.tenant_id),
        role=current_user.role,
        status=current_user.status,
        is_active=current_user.is_active,
        must_change_password=current_user.must_change_password,
        permissions=permissions_for_role(current_user.role),
        last_login_at=current_user.last_login_at,
        trace_id=getattr(request.state, "trace_id", ""),
    )
