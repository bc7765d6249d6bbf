from datetime import datetime

from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.security import create_user_access_token, get_password_hash, verify_password
from app.stockdesk.repos.users import UserRepository


def validate_password_policy(new_password: str, *, current_password: str | None = None) -> None:
    if len(new_password) < 8:
        raise AppError(ErrorCatalog.PASSWORD_TOO_SHORT)
    if current_password is not None and new_password == current_password:
        raise AppError(ErrorCatalog.PASSWORD_MUST_DIFFER)
    has_letter = any(char.isalpha() for char in new_password)
    has_digit = any(char.isdigit() for char in new_password)
    if not (has_letter and has_digit):
        raise AppError(ErrorCatalog.PASSWORD_COMPLEXITY)


class AuthService:
    def __init__(self, db):
        self.repo = UserRepository(db)

    def login(self, identifier: str, password: str):
        candidates = self.repo.list_by_username_or_email(identifier)
        if not candidates:
            raise AppError(ErrorCatalog.INVALID_CREDENTIALS)

        inactive_match = None
        for user in candidates:
            if not verify_password(password, user.hashed_password):
                continue
            if not self._is_active(user):
                inactive_match = user
                continue
            user.last_login_at = datetime.utcnow()
            user = self.repo.update(user)
            return user, create_user_access_token(user)

        if inactive_match is not None:
            raise AppError(ErrorCatalog.USER_INACTIVE)
        raise AppError(ErrorCatalog.INVALID_CREDENTIALS)

    def change_password(self, user, current_password: str, new_password: str):
        if not verify_password(current_password, user.hashed_password):
            raise AppError(ErrorCatalog.CURRENT_PASSWORD_INVALID)
        validate_password_policy(new_password, current_password=current_password)
        updated_user = self.repo.update_password(user, get_password_hash(new_password))
        return updated_user, create_user_access_token(updated_user)

    @staticmethod
    def _is_active(user) -> bool:
        return bool(user.is_active) and user.status == "active"
