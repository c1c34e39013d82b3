import logging

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from openapi_glue.core.config import GlueConfig, Settings, settings
from openapi_glue.core.errors import (
    GlueError,
    RequestValidationFailure,
    ResolutionGap,
    ResponseValidationFailure,
)
from openapi_glue.core.gateway import register_routes

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception handlers: standardized error response format
# ---------------------------------------------------------------------------


def install_exception_handlers(app: FastAPI, environment: str = "local") -> None:
    """Map glue errors to { detail } JSON responses; 5xx causes are logged, never returned as traces."""

    @app.exception_handler(RequestValidationFailure)
    async def request_validation_handler(
        request: Request, exc: RequestValidationFailure
    ) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(ResolutionGap)
    async def resolution_gap_handler(request: Request, exc: ResolutionGap) -> JSONResponse:
        _logger.error("%s (%s %s)", exc, request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(ResponseValidationFailure)
    async def response_validation_handler(
        request: Request, exc: ResponseValidationFailure
    ) -> JSONResponse:
        _logger.error("%s (%s %s)", exc, request.method, request.url.path)
        detail = "Internal server error"
        if environment == "local":
            detail = f"Internal server error: {exc}"
        return JSONResponse(status_code=500, content={"detail": detail})

    @app.exception_handler(GlueError)
    async def glue_error_handler(request: Request, exc: GlueError) -> JSONResponse:
        _logger.exception("Glue error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions: log and return 500 with safe message."""
        _logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        detail = "Internal server error"
        if environment == "local":
            detail = f"Internal server error: {exc}"
        return JSONResponse(status_code=500, content={"detail": detail})


def create_app(
    config: GlueConfig | None = None,
    app_settings: Settings | None = None,
) -> FastAPI:
    """
    Build a FastAPI app serving the glue routes.

    Without config, GlueConfig.from_settings() reads GLUE_* variables. Usable as
    a uvicorn factory: ``uvicorn openapi_glue.main:create_app --factory``.
    Raises ConfigError when the route table or the service cannot be loaded.
    """
    s = app_settings or settings
    logging.basicConfig(level=s.LOG_LEVEL.upper())

    if s.SENTRY_DSN and s.ENVIRONMENT != "local":
        sentry_sdk.init(dsn=str(s.SENTRY_DSN), enable_tracing=True)

    glue_config = config or GlueConfig.from_settings(s)

    app = FastAPI(title=s.PROJECT_NAME)
    install_exception_handlers(app, s.ENVIRONMENT)

    # Set all CORS enabled origins
    if s.all_cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=s.all_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_routes(app, glue_config)
    return app
