from fastapi import FastAPI

from app.stockdesk.api import api_router
from app.stockdesk.core.config import settings
from app.stockdesk.core.errors import setup_exception_handlers
from app.stockdesk.core.logging import configure_logging
from app.stockdesk.middleware.observability import ObservabilityMiddleware
from app.stockdesk.middleware.tenant import TenantContextMiddleware
from app.stockdesk.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
