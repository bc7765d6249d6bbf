from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.stockdesk.core.config import settings
from app.stockdesk.core.deps import get_current_token_data, require_active_user, require_permission
from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.scope import is_superadmin, resolve_tenant_id
from app.stockdesk.core.security import get_password_hash
from app.stockdesk.db.models import User
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.users import UserRepository
from app.stockdesk.schemas.errors import COMMON_ERROR_RESPONSES
from app.stockdesk.schemas.users import (
    ChangePasswordRequest,
    ChangePasswordResponse,
    ProfileUpdateRequest,
    UserCreateRequest,
    UserDeleteResponse,
    UserListResponse,
    UserResponse,
    UserUpdateRequest,
)
from app.stockdesk.services.audit import AuditEventPayload, AuditService
from app.stockdesk.services.auth import AuthService, validate_password_policy
from app.stockdesk.services.rbac import permissions_for_role

router = APIRouter(responses=COMMON_ERROR_RESPONSES)


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        tenant_id=str(user.tenant_id),
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        department=user.department,
        phone=user.phone,
        role=user.role,
        status=user.status,
        is_active=user.is_active,
        must_change_password=user.must_change_password,
        permissions=permissions_for_role(user.role),
        last_login_at=user.last_login_at,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _snapshot(user: User) -> dict:
    return {
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "status": user.status,
        "is_active": user.is_active,
    }


def _ensure_role_assignable(actor, role: str | None) -> None:
    if role == "SUPERADMIN" and not is_superadmin(actor.role):
        raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"message": "only superadmins can assign SUPERADMIN"})


def _get_user_or_404(repo: UserRepository, user_id: UUID, tenant_id: str) -> User:
    user = repo.get_by_id_in_tenant(str(user_id), tenant_id)
    if user is None:
        raise AppError(ErrorCatalog.USER_NOT_FOUND, details={"user_id": str(user_id)})
    return user


def _record(request: Request, db, *, tenant_id: str, actor, action: str, user_id: str, before, after, metadata=None):
    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=tenant_id,
            user_id=str(actor.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=actor.username,
            action=action,
            entity_type="user",
            entity_id=user_id,
            before=before,
            after=after,
            metadata=metadata,
            result="success",
            actor_role=actor.role,
        )
    )


@router.get("/api/users", response_model=UserListResponse)
def list_users(
    role: str | None = None,
    status: str | None = None,
    search: str | None = None,
    sort_by: str = "username",
    sort_order: str = "asc",
    limit: int = 50,
    offset: int = 0,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_USERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    rows, total = UserRepository(db).list_by_tenant(
        scoped_tenant_id,
        exclude_user_id=str(current_user.id),
        role=role,
        status=status,
        search=search,
        limit=max(1, min(limit, settings.LIST_MAX_PAGE_SIZE)),
        offset=max(0, offset),
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return UserListResponse(rows=[_user_response(row) for row in rows], total=total)


@router.post("/api/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    payload: UserCreateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_USERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    _ensure_role_assignable(current_user, payload.role)
    repo = UserRepository(db)
    username = payload.username.strip()
    if repo.username_taken(username):
        raise AppError(ErrorCatalog.USERNAME_ALREADY_EXISTS, details={"username": username})
    if repo.email_taken(payload.email):
        raise AppError(ErrorCatalog.EMAIL_ALREADY_EXISTS, details={"email": payload.email})
    validate_password_policy(payload.password)

    now = datetime.utcnow()
    user = repo.create(
        User(
            tenant_id=scoped_tenant_id,
            username=username,
            email=payload.email,
            full_name=payload.full_name,
            department=payload.department,
            phone=payload.phone,
            hashed_password=get_password_hash(payload.password),
            role=payload.role,
            status=payload.status,
            is_active=payload.status == "active",
            must_change_password=True,
            created_by_user_id=current_user.id,
            created_at=now,
            updated_at=now,
        )
    )
    _record(
        request,
        db,
        tenant_id=scoped_tenant_id,
        actor=current_user,
        action="user.create",
        user_id=str(user.id),
        before=None,
        after=_snapshot(user),
    )
    return _user_response(user)


@router.get("/api/users/{user_id}", response_model=UserResponse)
def get_user(
    user_id: UUID,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("MANAGE_USERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    return _user_response(_get_user_or_404(UserRepository(db), user_id, scoped_tenant_id))


@router.put("/api/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: UUID,
    payload: UserUpdateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_USERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    repo = UserRepository(db)
    user = _get_user_or_404(repo, user_id, scoped_tenant_id)
    changes = payload.model_dump(exclude_unset=True)
    for required in ("email", "role", "status"):
        if required in changes and changes[required] is None:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": f"{required} cannot be null"})
    if "role" in changes:
        _ensure_role_assignable(current_user, changes["role"])
        if is_superadmin(user.role) and not is_superadmin(current_user.role):
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"message": "cannot change a superadmin role"})
    if "email" in changes and repo.email_taken(changes["email"], exclude_user_id=str(user.id)):
        raise AppError(ErrorCatalog.EMAIL_ALREADY_EXISTS, details={"email": changes["email"]})

    before = _snapshot(user)
    new_password = changes.pop("password", None)
    if new_password is not None:
        validate_password_policy(new_password)
        user.hashed_password = get_password_hash(new_password)
        user.must_change_password = True
    for field, value in changes.items():
        setattr(user, field, value)
    if "status" in changes:
        user.is_active = changes["status"] == "active"
    user.updated_at = datetime.utcnow()
    user = repo.update(user)
    _record(
        request,
        db,
        tenant_id=scoped_tenant_id,
        actor=current_user,
        action="user.update",
        user_id=str(user.id),
        before=before,
        after=_snapshot(user),
        metadata={"fields": sorted(changes.keys()), "password_reset": new_password is not None},
    )
    return _user_response(user)


@router.delete("/api/users/{user_id}", response_model=UserDeleteResponse)
def delete_user(
    request: Request,
    user_id: UUID,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_USERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    if str(user_id) == str(current_user.id):
        raise AppError(ErrorCatalog.CANNOT_DELETE_SELF)
    repo = UserRepository(db)
    user = _get_user_or_404(repo, user_id, scoped_tenant_id)
    if is_superadmin(user.role) and not is_superadmin(current_user.role):
        raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"message": "cannot delete a superadmin"})
    deleted_id = str(user.id)
    before = _snapshot(user)
    repo.delete(user)
    _record(
        request,
        db,
        tenant_id=scoped_tenant_id,
        actor=current_user,
        action="user.delete",
        user_id=deleted_id,
        before=before,
        after=None,
    )
    return UserDeleteResponse(id=deleted_id, deleted=True)


@router.get("/api/user/profile", response_model=UserResponse)
def get_profile(current_user=Depends(require_active_user)):
    return _user_response(current_user)


@router.put("/api/user/profile", response_model=UserResponse)
def update_profile(
    request: Request,
    payload: ProfileUpdateRequest,
    current_user=Depends(require_active_user),
    db=Depends(get_db),
):
    repo = UserRepository(db)
    changes = payload.model_dump(exclude_unset=True)
    if "email" in changes:
        if changes["email"] is None:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "email cannot be null"})
        if repo.email_taken(changes["email"], exclude_user_id=str(current_user.id)):
            raise AppError(ErrorCatalog.EMAIL_ALREADY_EXISTS, details={"email": changes["email"]})
    before = _snapshot(current_user)
    for field, value in changes.items():
        setattr(current_user, field, value)
    current_user.updated_at = datetime.utcnow()
    user = repo.update(current_user)
    _record(
        request,
        db,
        tenant_id=str(user.tenant_id),
        actor=user,
        action="user.profile.update",
        user_id=str(user.id),
        before=before,
        after=_snapshot(user),
        metadata={"fields": sorted(changes.keys())},
    )
    return _user_response(user)


@router.put("/api/user/password", response_model=ChangePasswordResponse)
def change_password(
    request: Request,
    payload: ChangePasswordRequest,
    current_user=Depends(require_active_user),
    db=Depends(get_db),
):
    trace_id = getattr(request.state, "trace_id", "")
    try:
        user, token = AuthService(db).change_password(current_user, payload.current_password, payload.new_password)
    except AppError as exc:
        AuditService(db).record_event(
            AuditEventPayload(
                tenant_id=str(current_user.tenant_id),
                user_id=str(current_user.id),
                trace_id=trace_id or None,
                actor=current_user.username,
                action="user.password.change.failed",
                entity_type="user",
                entity_id=str(current_user.id),
                before=None,
                after=None,
                metadata={"error_code": exc.error.code},
                result="failure",
            )
        )
        raise

    _record(
        request,
        db,
        tenant_id=str(user.tenant_id),
        actor=user,
        action="user.password.change",
        user_id=str(user.id),
        before=None,
        after={"must_change_password": user.must_change_password},
    )
    return ChangePasswordResponse(
        ok=True,
        message="Password updated successfully",
        access_token=token,
        trace_id=trace_id,
    )
