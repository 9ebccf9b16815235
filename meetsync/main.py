import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .domain.meetings.router import router as meetings_router
from .redis_client import check_connection, create_redis_client
from .security_headers import SecurityHeadersMiddleware

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Reduce verbosity of third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(redis_client: Optional[redis.Redis] = None) -> FastAPI:
    """
    Build the API app. A Redis client may be injected (tests); otherwise one is
    created at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        owns_client = getattr(app.state, "redis", None) is None
        if owns_client:
            app.state.redis = create_redis_client()
        if await check_connection(app.state.redis):
            logger.info("Redis connection established")
        else:
            logger.warning("Redis unreachable at startup - actions will report unavailable")

        yield

        logger.info("Application shutting down...")
        if owns_client:
            await app.state.redis.aclose()

    app = FastAPI(title="meetsync API", version="1.0.0", lifespan=lifespan)
    app.state.redis = redis_client

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {len(exc.errors())} errors")
        return JSONResponse(
            status_code=422,
            content={"detail": {"code": "invalid_input", "errors": jsonable_encoder(exc.errors())}},
        )

    if config.SECURITY_HEADERS_ENABLED:
        app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
        logger.info("Security headers enabled")
    else:
        logger.warning("Security headers DISABLED - only use in development!")

    logger.info(f"CORS allowed origins: {config.ALLOWED_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(meetings_router)

    @app.get("/")
    def root():
        return {"message": "meetsync API is running"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    @app.get("/health/redis")
    async def redis_health_check(request: Request):
        """Check Redis connectivity for monitoring"""
        try:
            start_time = time.time()
            await request.app.state.redis.ping()
            response_time = (time.time() - start_time) * 1000
            return {
                "status": "healthy",
                "redis": {"connected": True, "response_time_ms": round(response_time, 2)},
            }
        except Exception as e:
            logger.error(f"❌ Redis health check failed: {e}")
            return {"status": "unhealthy", "redis": {"connected": False}}

    return app


configure_logging()
app = create_app()
