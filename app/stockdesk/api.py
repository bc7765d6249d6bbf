from fastapi import APIRouter

from app.stockdesk.core.config import settings
from app.stockdesk.routers.auth import router as auth_router
from app.stockdesk.routers.cash_drawer import router as cash_drawer_router
from app.stockdesk.routers.customers import router as customers_router
from app.stockdesk.routers.health import router as health_router
from app.stockdesk.routers.metrics import router as metrics_router
from app.stockdesk.routers.products import router as products_router
from app.stockdesk.routers.reports import router as reports_router
from app.stockdesk.routers.settings import router as settings_router
from app.stockdesk.routers.transactions import router as transactions_router
from app.stockdesk.routers.users import router as users_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(auth_router, prefix="/api/auth", tags=["auth"])
api_router.include_router(products_router, tags=["products"])
api_router.include_router(customers_router, tags=["customers"])
api_router.include_router(transactions_router, tags=["transactions"])
api_router.include_router(cash_drawer_router, tags=["cash-drawer"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(settings_router, tags=["settings"])
api_router.include_router(reports_router, tags=["reports"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
