"""Service index, health check and CSRF diagnostics endpoints."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Request

from mo_approval import __version__
from mo_approval.api.dependencies import get_sap_client, require_admin
from mo_approval.models.user import SessionUser
from mo_approval.services.sap_client import SapClient

logger = structlog.get_logger(__name__)

router = APIRouter()

SERVICE_NAME = "MO Approval Backend API"


def _configured(value: str) -> str:
    return "configured" if value else "not configured"


@router.get("/")
async def index() -> dict:
    """Describe the service and its main endpoints."""
    return {
        "message": SERVICE_NAME,
        "version": __version__,
        "endpoints": [
            "GET /health",
            "GET /maintenance-orders",
            "GET /maintenance-orders/{orderNumber}/{objectNumber}",
            "POST /maintenance-orders/approve",
        ],
    }


@router.get("/health")
async def health_check(
    request: Request,
    sap_client: SapClient = Depends(get_sap_client),
) -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp, which SAP settings are present and the CSRF token
        state
    """
    settings = request.app.state.settings
    token_info = sap_client.get_token_info()

    return {
        "status": "OK",
        "service": SERVICE_NAME,
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "configuration": {
            "sapBaseUrl": settings.sap_base_url or "not configured",
            "sapServicePath": settings.sap_odata_service_path or "not configured",
            "sapUsername": _configured(settings.sap_username),
            "sapPassword": _configured(settings.sap_password),
            "sapClient": settings.sap_client,
        },
        "csrf": {
            "enabled": True,
            "tokenValid": token_info.is_valid,
            "expiresIn": f"{token_info.expires_in_ms // 60000} minutes",
        },
    }


@router.get("/csrf-info")
async def csrf_info(
    admin: SessionUser = Depends(require_admin),
    sap_client: SapClient = Depends(get_sap_client),
) -> dict:
    """Show the cached CSRF token state (admin only)."""
    return {
        "success": True,
        "csrfToken": sap_client.get_token_info().model_dump(mode="json", by_alias=True),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/csrf-refresh")
async def csrf_refresh(
    admin: SessionUser = Depends(require_admin),
    sap_client: SapClient = Depends(get_sap_client),
) -> dict:
    """Force a CSRF token refresh (admin only)."""
    logger.info("csrf_manual_refresh", admin_id=admin.user_id)
    await sap_client.refresh_token()
    return {
        "success": True,
        "message": "CSRF token refreshed successfully",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
