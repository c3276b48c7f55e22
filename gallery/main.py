from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from gallery.api import router
from gallery.core.config import Settings, get_settings
from gallery.core.exceptions import BadRequest, InternalError, MediaStoreError, Unauthorized
from gallery.core.security import AccessGate
from gallery.services.media_service import create_media_service
from gallery.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


async def media_store_error_handler(request: Request, exc: MediaStoreError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    error = BadRequest("Request validation failed", details={"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=422, content=error.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=InternalError("Internal server error").to_dict())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(
        level=settings.LOG_LEVEL,
        file=settings.LOG_TO_FILE,
        json_format=settings.LOG_JSON,
        log_dir=settings.LOG_DIR,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = create_media_service(settings)
        await service.initialize()
        app.state.media_service = service
        app.state.access_gate = AccessGate(settings.ADMIN_PASSWORD)
        try:
            yield
        finally:
            await service.close()

    app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_exception_handler(MediaStoreError, media_store_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Prometheus metrics
    if settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app)

    app.include_router(router.api_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gallery.main:app", host="0.0.0.0", port=3000)
