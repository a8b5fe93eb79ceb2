from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import Settings, settings
from app.core.exceptions import register_exception_handlers
from app.core.logging_config import get_logger, setup_logging
from app.core.rate_limit import create_limiter
from app.db.json_store import init_storage
from app.middleware.access_log import AccessLogMiddleware
from app.routes import groups, ops
from app.services.listing_service import ListingService
from app.services.upload_handler import UploadHandler

logger = get_logger(__name__)


def bootstrap_services(app: FastAPI, app_settings: Settings) -> None:
    """
    Initialize storage and attach the services to ``app.state``.

    Raises StorageFault when the data directory or document cannot be
    prepared; the caller must not start serving in that case.
    """
    store = init_storage(app_settings)
    upload_handler = UploadHandler(app_settings)
    app.state.listing_service = ListingService(store, upload_handler, app_settings)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application for the given settings."""
    app_settings = app_settings or settings
    setup_logging(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "application_startup",
            app_name=app_settings.APP_NAME,
            version=app_settings.APP_VERSION,
            environment=app_settings.ENVIRONMENT,
            data_dir=app_settings.DATA_DIR,
        )

        try:
            bootstrap_services(app, app_settings)
        except Exception as e:
            logger.error(
                "storage_initialization_failed",
                error=str(e),
                data_dir=app_settings.DATA_DIR,
                exc_info=True,
            )
            raise

        yield

        logger.info("application_shutdown")

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="Submit WhatsApp group listings and browse or search earlier submissions.",
        docs_url="/docs" if app_settings.ENABLE_DOCS else None,
        redoc_url="/redoc" if app_settings.ENABLE_DOCS else None,
        openapi_url="/openapi.json" if app_settings.ENABLE_DOCS else None,
        lifespan=lifespan
    )

    # Rate limiter state and exception handler
    limiter = create_limiter(app_settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    if app_settings.METRICS_ENABLED:
        Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=False,
            should_group_untemplated=True,
            excluded_handlers=["/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics")
        logger.info("prometheus_metrics_enabled", endpoint="/metrics")

    # ========== Middleware Stack ==========
    # Last added = first to execute:
    # AccessLogMiddleware -> CORSMiddleware -> route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=app_settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=app_settings.CORS_ALLOW_METHODS,
        allow_headers=app_settings.CORS_ALLOW_HEADERS,
    )
    app.add_middleware(AccessLogMiddleware)

    app.include_router(ops.router, prefix=app_settings.API_PREFIX, tags=["operations"])
    app.include_router(groups.create_router(limiter, app_settings), prefix=app_settings.API_PREFIX, tags=["groups"])

    # The uploads directory is created at startup, hence check_dir=False
    app.mount(
        "/uploads",
        StaticFiles(directory=str(app_settings.uploads_dir), check_dir=False),
        name="uploads",
    )

    # Frontend goes last so it never shadows the API routes
    public_dir = Path(app_settings.PUBLIC_DIR)
    if public_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(public_dir), html=True), name="frontend")
    else:
        logger.info("frontend_not_mounted", public_dir=str(public_dir))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,  # Disable default access log - we use custom middleware
    )
