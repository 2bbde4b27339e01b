"""
PlateMyDay - FastAPI application.

Routers are mounted under /api. Every PlateMyDayError becomes a JSON body
with its status; anything else is logged and returned as a generic 500.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError as FastAPIValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from platemyday import __version__
from platemyday.config import settings
from platemyday.errors import PlateMyDayError, RequestValidationError
from platemyday.guardrails.validation import error_response
from platemyday.web.admin_routes import router as admin_router
from platemyday.web.billing_routes import router as billing_router
from platemyday.web.generation_routes import router as generation_router
from platemyday.web.plan_routes import router as plan_router
from platemyday.web.settings_routes import router as settings_router
from platemyday.web.shopping_routes import router as shopping_router

logger = logging.getLogger(__name__)


def _describe_fastapi_error(exc: FastAPIValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return RequestValidationError.default_message
    first = errors[0]
    # Drop the "body" / "query" location prefix
    path = ".".join(str(part) for part in first.get("loc", ())[1:])
    return f"{path}: {first['msg']}" if path else first["msg"]


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(title="PlateMyDay", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PlateMyDayError)
    async def handle_platemyday_error(request: Request, exc: PlateMyDayError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return error_response(exc)

    @app.exception_handler(FastAPIValidationError)
    async def handle_validation_error(request: Request, exc: FastAPIValidationError):
        return error_response(RequestValidationError(_describe_fastapi_error(exc)))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(PlateMyDayError().to_body(), status_code=500)

    @app.on_event("startup")
    async def startup_event():
        """Log configuration on startup."""
        from platemyday.llm.prompt_logger import is_enabled

        logger.info("PlateMyDay starting up...")
        logger.info(f"  Environment: {settings.platemyday_env}")
        logger.info(f"  Prompt file logging: {is_enabled()}")
        logger.info(f"  Stream throttle: {settings.stream_throttle_ms}ms")
        if not settings.stripe_webhook_secret:
            logger.warning("  STRIPE_WEBHOOK_SECRET is not set; webhooks will be rejected")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    for router in (
        generation_router,
        shopping_router,
        plan_router,
        settings_router,
        billing_router,
        admin_router,
    ):
        app.include_router(router, prefix="/api")

    return app


app = create_app()
