"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from deploybot import __version__
from deploybot.api.middleware import RequestLoggingMiddleware
from deploybot.api.v1.router import router as v1_router
from deploybot.config import settings
from deploybot.core.exceptions import (
    DeployBotError,
    LockConflictError,
    NotFoundError,
    ValidationError,
)
from deploybot.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    LockConflictError: status.HTTP_409_CONFLICT,
}


def error_response(status_code: int, code: str, message: str, **extra: Any) -> JSONResponse:
    """Build the error envelope shared by all handlers."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, **extra}},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and report how the receiver is set up."""
    configure_logging()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        lock_ref_prefix=settings.lock_ref_prefix,
        signature_verification=bool(settings.webhook_secret),
    )
    if not settings.github_token:
        logger.warning("application.github_token_missing")
    if not settings.github_app_id and not settings.github_app_slug:
        logger.warning("application.github_app_identity_missing")

    yield

    logger.info("application.shutdown")


def create_app() -> FastAPI:
    """Create the webhook receiver."""
    app = FastAPI(
        title="Deploybot API",
        description="Multi-stage deployment orchestration driven by repository events",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(DeployBotError)
    async def deploybot_error_handler(
        request: Request, exc: DeployBotError
    ) -> JSONResponse:
        return error_response(
            ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR),
            type(exc).__name__.upper(),
            exc.message,
            details=exc.details,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )
        if settings.is_development:
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "INTERNAL_ERROR",
                str(exc),
                type=type(exc).__name__,
            )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An unexpected error occurred",
        )

    app.include_router(v1_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "deploybot.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
