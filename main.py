import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from homepage_cms.config import settings
from homepage_cms.database import Base, engine
from homepage_cms.dependencies import get_services
from homepage_cms.exception_handlers import register_exception_handlers
from homepage_cms.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from homepage_cms.routes import admin_schedules, admin_sections, homepage, monitoring
from homepage_cms.scheduler import start_schedule_sweep, stop_schedule_sweep
from homepage_cms.utils.metrics import set_app_info

setup_structured_logging(settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown tasks."""
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")
    set_app_info(version=settings.app_version, environment=settings.environment)

    if settings.debug:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")

    services = get_services()
    await services.cache.connect()
    if settings.cache_warm_on_startup:
        await services.reader.warm(settings.supported_locales)
    if settings.scheduler_enabled:
        start_schedule_sweep(services)

    yield

    logger.info("Shutting down...")
    stop_schedule_sweep()
    await services.cache.disconnect()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Versioning, scheduled publication and cache invalidation for storefront homepage sections",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(monitoring.router)
    app.include_router(homepage.router, prefix="/api/v1/homepage")
    app.include_router(admin_sections.router, prefix="/api/v1/admin/homepage")
    app.include_router(admin_schedules.router, prefix="/api/v1/admin/homepage")

    if settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
