# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.providers.airtime.validate import validate_airtime_startup
from db import close_pool
from middleware import RequestContextMiddleware
from routes.c2b import router as c2b_router
from routes.floats import router as floats_router
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from routes.transactions import router as transactions_router
from services.observability import RequestIdLogFilter
from settings import settings, validate_env_settings

logger = logging.getLogger("airtime")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s]: %(message)s"


def _configure_logging() -> None:
    level = getattr(logging, (settings.LOG_LEVEL or "INFO").strip().upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdLogFilter) for f in handler.filters):
            handler.addFilter(RequestIdLogFilter())


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    yield
    close_pool()


def create_app() -> FastAPI:
    _configure_logging()
    validate_env_settings()
    validate_airtime_startup()

    app = FastAPI(title="Airtime C2B API", version="1.0.0", lifespan=_lifespan)
    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(c2b_router)
    app.include_router(transactions_router)
    app.include_router(floats_router)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled error method=%s path=%s err=%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
