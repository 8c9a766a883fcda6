from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from compatlab.application.service import CompatService, configure_compat_service, get_compat_service
from compatlab.core.logs import configure_logging, get_logger
from compatlab.routes import jobs, stats, upload

logger = get_logger(__name__)


def create_app(service: CompatService | None = None) -> FastAPI:
    if service is not None:
        configure_compat_service(service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        current = get_compat_service()
        configure_logging(current.settings.log_level)
        current.settings.uploads_root.mkdir(parents=True, exist_ok=True)
        await current.startup()
        logger.info("service_started", store=current.settings.store_backend)
        try:
            yield
        finally:
            await current.shutdown()
            logger.info("service_stopped")

    app = FastAPI(title="Package Compatibility Lab", version="0.1.0", lifespan=lifespan)

    app.include_router(upload.router)
    app.include_router(jobs.router)
    app.include_router(stats.router)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Package Compatibility Lab",
                "docs": "/docs",
                "health": "/stats",
            }
        )

    return app


app = create_app()
