"""FastAPI dependencies for service access, authentication and authorization.

Services are built once by the application factory and stored on
``app.state``; these providers hand them to route handlers.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mo_approval.models.user import SessionUser, UserRole
from mo_approval.services.order_service import MaintenanceOrderService
from mo_approval.services.sap_client import SapClient
from mo_approval.services.session_service import SessionAuthenticator

bearer_scheme = HTTPBearer(auto_error=False)


def get_authenticator(request: Request) -> SessionAuthenticator:
    return request.app.state.authenticator


def get_sap_client(request: Request) -> SapClient:
    return request.app.state.sap_client


def get_order_service(request: Request) -> MaintenanceOrderService:
    return request.app.state.order_service


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Return the raw bearer token, or None if the header is absent."""
    return credentials.credentials if credentials else None


async def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
) -> SessionUser:
    """Resolve the bearer token to the session user.

    Raises:
        HTTPException 401: If the token is missing, unknown or expired
    """
    verification = authenticator.verify_token(token)
    if not verification.valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verification.user


async def require_admin(
    token: Optional[str] = Depends(get_bearer_token),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
) -> SessionUser:
    """Require an admin session.

    Any failure (no session or a non-admin role) is reported as 403 so the
    response does not reveal which check failed.

    Raises:
        HTTPException 403: If the caller is not an authenticated admin
    """
    verification = authenticator.verify_token(token)
    if not verification.valid or verification.user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )
    return verification.user
