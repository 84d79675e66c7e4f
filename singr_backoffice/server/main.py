"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS,
request tracing), registers the exception handlers and includes all API
routers. It serves as the root of the web server.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from singr_backoffice.core.database import init_db
from singr_backoffice.core.logging_config import get_logger, setup_logging
from singr_backoffice.core.monitoring import initialize_logfire

from .api.v1 import (
    admin,
    admin_support,
    api_keys,
    auth,
    billing,
    dashboard,
    health,
    openkj,
    prices,
    support,
    systems,
    venues,
    webhooks,
)
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .middleware import LogfireMiddleware

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Tables are only created at startup when ``AUTO_CREATE_TABLES`` is set;
    deployed databases are managed by Alembic.
    """
    # Startup
    try:
        logger.info("Starting up Singr Back Office...")
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    # Shutdown
    logger.info("Shutting down Singr Back Office...")


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    Singr Back Office API

    Account, venue, billing and support management for Singr karaoke hosts,
    plus the command endpoint the OpenKJ desktop client syncs through.
    """,
    version=constant.API_VERSION,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=settings.cors.allow_methods,
    allow_headers=settings.cors.allow_headers,
)
app.add_middleware(LogfireMiddleware)

setup_exception_handlers(app)
initialize_logfire(app)


app.include_router(health.router, prefix=constant.API_V1_STR, tags=["health"])
app.include_router(auth.router, prefix=f"{constant.API_V1_STR}/auth", tags=["auth"])
app.include_router(dashboard.router, prefix=f"{constant.API_V1_STR}/dashboard", tags=["dashboard"])
app.include_router(systems.router, prefix=f"{constant.API_V1_STR}/systems", tags=["systems"])
app.include_router(venues.router, prefix=f"{constant.API_V1_STR}/venues", tags=["venues"])
app.include_router(api_keys.router, prefix=f"{constant.API_V1_STR}/api-keys", tags=["api-keys"])
app.include_router(openkj.router, prefix=f"{constant.API_V1_STR}/openkj", tags=["openkj"])
app.include_router(billing.router, prefix=f"{constant.API_V1_STR}/billing", tags=["billing"])
app.include_router(prices.router, prefix=f"{constant.API_V1_STR}/prices", tags=["billing"])
app.include_router(webhooks.router, prefix=f"{constant.API_V1_STR}/webhooks", tags=["webhooks"])
app.include_router(support.router, prefix=f"{constant.API_V1_STR}/support", tags=["support"])
app.include_router(admin.router, prefix=f"{constant.API_V1_STR}/admin", tags=["admin"])
app.include_router(admin_support.router, prefix=f"{constant.API_V1_STR}/admin/support", tags=["admin"])
