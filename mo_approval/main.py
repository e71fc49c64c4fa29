"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mo_approval import __version__
from mo_approval.api.auth import router as auth_router
from mo_approval.api.middleware import CorrelationIdMiddleware
from mo_approval.api.orders import router as orders_router
from mo_approval.api.routes import router
from mo_approval.config import Settings, get_settings
from mo_approval.exceptions import UpstreamError
from mo_approval.services.csrf_token_manager import CsrfTokenManager
from mo_approval.services.logging_service import configure_logging, get_logger
from mo_approval.services.order_service import MaintenanceOrderService
from mo_approval.services.password_hasher import PasswordHasher
from mo_approval.services.sap_client import SapClient, build_http_client
from mo_approval.services.session_service import SessionAuthenticator
from mo_approval.services.user_store import UserStore


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with user-friendly messages.

    Returns 400 Bad Request naming the first offending field.
    """
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        loc = [str(part) for part in first_error.get("loc", ["unknown"]) if part != "body"]
        field = ".".join(loc) or "body"
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning("validation_error", correlation_id=correlation_id, detail=detail)

    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render HTTP errors in the ``{success, error}`` envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def upstream_exception_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    """Report SAP failures with the upstream status when there is one."""
    status_code = exc.status_code or 502
    structlog.get_logger().error(
        "upstream_error",
        path=request.url.path,
        error=exc.message,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": exc.message,
            "details": exc.details,
            "statusCode": exc.status_code,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    structlog.get_logger().exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal Server Error"},
    )


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use; defaults to the cached environment settings
        transport: Optional httpx transport for SAP calls (tests use a mock)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Construct the services on startup and release them on shutdown."""
        configure_logging(settings.log_level)
        logger = get_logger("main")

        missing = settings.missing_sap_settings
        if missing:
            logger.warning(
                "sap_settings_missing",
                missing=missing,
                note="Maintenance order endpoints will fail until these are set",
            )

        hasher = PasswordHasher()
        user_store = UserStore(
            settings.users_file,
            hasher,
            default_admin_password=settings.default_admin_password,
        )
        if await user_store.ensure_initialized():
            logger.warning(
                "default_admin_created",
                user_id="admin",
                note="Change the default admin password after first login",
            )

        http_client = build_http_client(settings, transport=transport)
        token_manager = CsrfTokenManager(settings, http_client)
        sap_client = SapClient(settings, token_manager, http_client)

        app.state.settings = settings
        app.state.user_store = user_store
        app.state.authenticator = SessionAuthenticator(
            user_store,
            hasher,
            session_ttl_seconds=settings.session_ttl_seconds,
            revoke_sessions_on_password_change=settings.session_revoke_on_password_change,
        )
        app.state.sap_client = sap_client
        app.state.order_service = MaintenanceOrderService(sap_client)

        logger.info(
            "application_started",
            sap_base_url=settings.sap_base_url or None,
            sap_client=settings.sap_client,
            log_level=settings.log_level,
        )

        yield

        await sap_client.close()
        logger.info("application_shutdown")

    app = FastAPI(
        title="MO Approval Backend API",
        description="Authentication and SAP maintenance order approval API",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(UpstreamError, upstream_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # CORS middleware for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        max_age=86400,
    )

    # Correlation ID middleware for request tracking and observability
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(auth_router)
    app.include_router(orders_router)
    app.include_router(router)

    return app


app = create_app()
