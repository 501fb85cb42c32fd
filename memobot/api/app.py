"""FastAPI application factory.

Creates and configures the FastAPI application with middleware,
exception handlers, and route registration.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from memobot.api.dependencies import get_settings, reset_dependencies
from memobot.api.exceptions import MemoBotAPIError
from memobot.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from memobot.api.routes import register_routes
from memobot.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    await reset_dependencies()
    logger.info("app_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    The app carries CORS middleware, global exception handlers and
    every API route. Connections are released on shutdown.
    """
    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        format=settings.observability.log_format,
        redact_pii=settings.observability.redact_pii,
    )

    app = FastAPI(
        title="MemoBot API",
        description="Conversational memory capture and recall",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=settings.api.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    register_routes(app, metrics_enabled=settings.observability.metrics_enabled)

    logger.info(
        "app_created",
        debug=settings.debug,
        cors_origins=settings.api.cors_origins,
    )

    return app


def _validation_details(errors: list) -> list[ErrorDetail]:
    return [
        ErrorDetail(field=".".join(str(loc) for loc in error["loc"]), message=error["msg"])
        for error in errors
    ]


def _register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(MemoBotAPIError)
    async def memobot_api_error_handler(
        request: Request, exc: MemoBotAPIError
    ) -> JSONResponse:
        """Handle MemoBotAPIError and its subclasses."""
        logger.warning(
            "api_error",
            error_code=exc.error_code.value,
            message=exc.message,
            path=request.url.path,
        )
        response = ErrorResponse(error=ErrorBody(code=exc.error_code, message=exc.message))
        return JSONResponse(status_code=exc.status_code, content=response.model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle FastAPI request validation errors."""
        logger.warning("validation_error", errors=exc.errors(), path=request.url.path)
        response = ErrorResponse(
            error=ErrorBody(
                code=ErrorCode.INVALID_REQUEST,
                message="Request validation failed",
                details=_validation_details(exc.errors()),
            )
        )
        return JSONResponse(status_code=400, content=response.model_dump())

    @app.exception_handler(ValidationError)
    async def pydantic_validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors."""
        logger.warning("pydantic_validation_error", errors=exc.errors(), path=request.url.path)
        response = ErrorResponse(
            error=ErrorBody(
                code=ErrorCode.INVALID_REQUEST,
                message="Data validation failed",
                details=_validation_details(exc.errors()),
            )
        )
        return JSONResponse(status_code=400, content=response.model_dump())

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        response = ErrorResponse(
            error=ErrorBody(
                code=ErrorCode.INTERNAL_ERROR,
                message="An unexpected error occurred",
            )
        )
        return JSONResponse(status_code=500, content=response.model_dump())

    logger.debug("exception_handlers_registered")


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "memobot.api.app:app",
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )


# Create the app instance for uvicorn
app = create_app()
