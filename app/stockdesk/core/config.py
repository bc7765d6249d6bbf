from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "StockDesk"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./stockdesk.db"
    DEFAULT_TENANT_NAME: str = "Default Tenant"
    SUPERADMIN_USERNAME: str = "superadmin"
    SUPERADMIN_EMAIL: str = "superadmin@example.com"
    SUPERADMIN_PASSWORD: str = "change-me"
    LOW_STOCK_THRESHOLD: int = 10
    DEFAULT_TAX_RATE: float = 8.5
    DEFAULT_CURRENCY: str = "$"
    DEFAULT_REGISTER_NAME: str = "Main Register"
    LIST_MAX_PAGE_SIZE: int = 200
    CUSTOMER_LIST_LIMIT: int = 100
    PURCHASE_HISTORY_LIMIT: int = 50
    REPORTS_MAX_DATE_RANGE_DAYS: int = 366
    COGS_COST_RATIO: float = 0.7
    METRICS_ENABLED: bool = True


settings = Settings()
