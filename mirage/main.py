import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from mirage.api.errors import register_exception_handlers
from mirage.api.mock.routes import router as mock_router
from mirage.api.v1.router import api_router
from mirage.cache.redis import RedisClient
from mirage.cache.token_blacklist import TokenBlacklist
from mirage.config import settings
from mirage.domain.matching.pattern_matcher import PatternMatcher
from mirage.domain.validation.schema_validator import SchemaValidator
from mirage.logging_config import configure_logging
from mirage.persistence.db import AsyncSessionLocal
from mirage.security import RequestLoggingMiddleware, SecurityHeadersMiddleware
from mirage.services.billing_service import BillingService
from mirage.services.dispatch_service import MIRAGE_HEADERS
from mirage.services.usage_recorder import UsageRecorder

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(json_output=settings.LOG_JSON, level=settings.LOG_LEVEL)

    app.state.usage_recorder.start()
    logger.info(f"{settings.APP_NAME} started (env={settings.ENV})")

    try:
        yield
    finally:
        await app.state.usage_recorder.stop()
        await RedisClient.close()
        logger.info(f"{settings.APP_NAME} stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="Mirage", lifespan=lifespan)

    # 1. Shared components
    app.state.matcher = PatternMatcher(strict=settings.MOCK_STRICT_PATTERNS)
    app.state.validator = SchemaValidator(remove_additional=settings.SCHEMA_REMOVE_ADDITIONAL)
    app.state.billing = BillingService()
    app.state.usage_recorder = UsageRecorder(AsyncSessionLocal, maxsize=settings.USAGE_QUEUE_SIZE)
    app.state.token_blacklist = TokenBlacklist()

    # 2. Middleware (last added runs first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=MIRAGE_HEADERS,
    )

    # 3. Errors and routes
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    app.include_router(mock_router)

    return app


app = create_app()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()

    uvicorn.run("mirage.main:app", host=args.host, port=args.port, reload=args.reload)
