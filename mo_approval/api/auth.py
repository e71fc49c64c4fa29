"""Authentication and user administration endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from mo_approval.api.dependencies import (
    get_authenticator,
    get_bearer_token,
    get_current_user,
    require_admin,
)
from mo_approval.models.auth import (
    AuthResult,
    ChangePasswordRequest,
    CreateUserRequest,
    LoginRequest,
    MeResponse,
    OperationResult,
    TokenVerification,
    UpdateUserRequest,
    UserListResult,
    UserResult,
)
from mo_approval.models.user import SessionUser
from mo_approval.services.session_service import USER_NOT_FOUND, SessionAuthenticator

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _error_response(result: BaseModel, status_code: int) -> JSONResponse:
    """Render a failed result model with the given status code."""
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.post("/login", response_model=AuthResult, response_model_exclude_none=True)
async def login(
    request: LoginRequest,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    """Login with userId and password.

    Returns:
        AuthResult with the bearer token and session user

    Raises:
        401: If credentials are invalid or the account is disabled
    """
    logger.info("login_attempt", user_id=request.user_id)
    result = await authenticator.authenticate(request.user_id, request.password)

    if not result.success:
        return _error_response(result, status.HTTP_401_UNAUTHORIZED)
    return result


@router.post("/logout", response_model=OperationResult, response_model_exclude_none=True)
async def logout(
    token: Optional[str] = Depends(get_bearer_token),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
) -> OperationResult:
    """End the caller's session."""
    return authenticator.logout(token)


@router.get("/verify", response_model=TokenVerification, response_model_exclude_none=True)
async def verify(
    token: Optional[str] = Depends(get_bearer_token),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    """Check whether the bearer token belongs to an active session."""
    result = authenticator.verify_token(token)
    if not result.valid:
        return _error_response(result, status.HTTP_401_UNAUTHORIZED)
    return result


@router.get("/me", response_model=MeResponse)
async def get_me(current_user: SessionUser = Depends(get_current_user)) -> MeResponse:
    """Get the session user of the bearer token."""
    return MeResponse(user=current_user)


@router.post(
    "/change-password",
    response_model=OperationResult,
    response_model_exclude_none=True,
)
async def change_password(
    request: ChangePasswordRequest,
    current_user: SessionUser = Depends(get_current_user),
    token: Optional[str] = Depends(get_bearer_token),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    """Change the current user's password.

    Raises:
        400: If the current password is wrong
        401: If the bearer token is invalid
    """
    result = await authenticator.change_password(
        current_user.user_id,
        request.old_password,
        request.new_password,
        current_token=token,
    )
    if not result.success:
        return _error_response(result, status.HTTP_400_BAD_REQUEST)
    return result


@router.post("/register", response_model=UserResult, response_model_exclude_none=True)
async def register(
    request: CreateUserRequest,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    """Public self-registration.

    New accounts get role ``user`` and an empty plant unless given.

    Raises:
        400: If the userId already exists
    """
    logger.info("registration_attempt", user_id=request.user_id)
    result = await authenticator.add_user(request, default_plant="")
    if not result.success:
        return _error_response(result, status.HTTP_400_BAD_REQUEST)

    logger.info("user_registered", user_id=request.user_id)
    return result


# ---------------------------------------------------------------------------
# Admin user management
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResult, response_model_exclude_none=True)
async def list_users(
    admin: SessionUser = Depends(require_admin),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    """List all users (admin only)."""
    result = await authenticator.get_all_users()
    if not result.success:
        return _error_response(result, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return result


@router.post("/users", response_model=UserResult, response_model_exclude_none=True)
async def create_user(
    request: CreateUserRequest,
    admin: SessionUser = Depends(require_admin),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    """Create a new user (admin only).

    Raises:
        400: If the userId already exists
        403: If the caller is not an admin
    """
    result = await authenticator.add_user(request)
    if not result.success:
        return _error_response(result, status.HTTP_400_BAD_REQUEST)

    logger.info(
        "admin_created_user",
        admin_id=admin.user_id,
        new_user_id=request.user_id,
    )
    return result


@router.patch(
    "/users/{user_id}",
    response_model=UserResult,
    response_model_exclude_none=True,
)
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    admin: SessionUser = Depends(require_admin),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    """Update user details (admin only).

    Deactivating a user or changing their role ends that user's sessions.

    Raises:
        404: If the user does not exist
    """
    fields = request.model_dump(exclude_unset=True, exclude_none=True)
    result = await authenticator.update_user(user_id, fields)

    if not result.success:
        code = (
            status.HTTP_404_NOT_FOUND
            if result.error == USER_NOT_FOUND
            else status.HTTP_400_BAD_REQUEST
        )
        return _error_response(result, code)

    logger.info("admin_updated_user", admin_id=admin.user_id, target_user_id=user_id)
    return result


@router.delete(
    "/users/{user_id}",
    response_model=OperationResult,
    response_model_exclude_none=True,
)
async def delete_user(
    user_id: str,
    admin: SessionUser = Depends(require_admin),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    """Delete a user (admin only).

    Admins cannot delete themselves to prevent lockout.

    Raises:
        403: If an admin tries to delete their own account
        404: If the user does not exist
    """
    if admin.user_id == user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot delete your own admin account",
        )

    result = await authenticator.delete_user(user_id)
    if not result.success:
        code = (
            status.HTTP_404_NOT_FOUND
            if result.error == USER_NOT_FOUND
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return _error_response(result, code)

    logger.info("admin_deleted_user", admin_id=admin.user_id, deleted_user_id=user_id)
    return result
