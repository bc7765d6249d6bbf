from sqlalchemy import select

from app.stockdesk.db.models import TenantSettings


class TenantSettingsRepository:
    def __init__(self, db):
        self.db = db

    def get_by_tenant_id(self, tenant_id: str):
        stmt = select(TenantSettings).where(TenantSettings.tenant_id == tenant_id)
        return self.db.execute(stmt).scalars().first()

    def create(self, settings: TenantSettings):
        self.db.add(settings)
        self.db.commit()
        self.db.refresh(settings)
        return settings

    def update(self, settings: TenantSettings):
        self.db.add(settings)
        self.db.commit()
        self.db.refresh(settings)
        return settings
