from sqlalchemy import func, or_, select

from app.stockdesk.db.models import User


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, user_id: str):
        return self.db.get(User, user_id)

    def get_by_id_in_tenant(self, user_id: str, tenant_id: str):
        stmt = select(User).where(User.id == user_id, User.tenant_id == tenant_id)
        return self.db.execute(stmt).scalars().first()

    def list_by_tenant(
        self,
        tenant_id: str,
        *,
        exclude_user_id: str | None = None,
        role: str | None = None,
        status: str | None = None,
        search: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        sort_by: str = "username",
        sort_order: str = "asc",
    ):
        stmt = select(User).where(User.tenant_id == tenant_id)
        count_stmt = select(func.count()).select_from(User).where(User.tenant_id == tenant_id)

        if exclude_user_id:
            stmt = stmt.where(User.id != exclude_user_id)
            count_stmt = count_stmt.where(User.id != exclude_user_id)

        if role:
            normalized_role = role.strip().upper()
            stmt = stmt.where(func.upper(User.role) == normalized_role)
            count_stmt = count_stmt.where(func.upper(User.role) == normalized_role)

        if status:
            normalized_status = status.strip().lower()
            stmt = stmt.where(func.lower(User.status) == normalized_status)
            count_stmt = count_stmt.where(func.lower(User.status) == normalized_status)

        if search:
            term = search.strip()
            search_filter = or_(
                User.username.icontains(term, autoescape=True),
                User.email.icontains(term, autoescape=True),
                User.full_name.icontains(term, autoescape=True),
            )
            stmt = stmt.where(search_filter)
            count_stmt = count_stmt.where(search_filter)

        sort_mapping = {
            "username": User.username,
            "email": User.email,
            "full_name": User.full_name,
            "role": User.role,
            "created_at": User.created_at,
        }
        sort_column = sort_mapping.get(sort_by, User.created_at)
        stmt = stmt.order_by(sort_column.asc() if sort_order == "asc" else sort_column.desc())

        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)

        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def list_by_username_or_email(self, identifier: str):
        stmt = select(User).where((User.username == identifier) | (User.email == identifier))
        return self.db.execute(stmt).scalars().all()

    def username_taken(self, username: str, *, exclude_user_id: str | None = None) -> bool:
        stmt = select(User.id).where(func.lower(User.username) == username.strip().lower())
        if exclude_user_id:
            stmt = stmt.where(User.id != exclude_user_id)
        return self.db.execute(stmt).first() is not None

    def email_taken(self, email: str, *, exclude_user_id: str | None = None) -> bool:
        stmt = select(User.id).where(func.lower(User.email) == email.strip().lower())
        if exclude_user_id:
            stmt = stmt.where(User.id != exclude_user_id)
        return self.db.execute(stmt).first() is not None

    def create(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete(self, user: User) -> None:
        self.db.delete(user)
        self.db.commit()

    def update_password(self, user: User, hashed_password: str):
        user.hashed_password = hashed_password
        user.must_change_password = False
        return self.update(user)
