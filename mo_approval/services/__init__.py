"""Services package exports."""

from mo_approval.services.csrf_token_manager import CsrfTokenManager
from mo_approval.services.logging_service import configure_logging, get_logger
from mo_approval.services.order_service import MaintenanceOrderService
from mo_approval.services.password_hasher import PasswordHasher
from mo_approval.services.sap_client import SapClient, build_http_client
from mo_approval.services.session_service import SessionAuthenticator
from mo_approval.services.user_store import UserStore

__all__ = [
    "CsrfTokenManager",
    "MaintenanceOrderService",
    "PasswordHasher",
    "SapClient",
    "SessionAuthenticator",
    "UserStore",
    "build_http_client",
    "configure_logging",
    "get_logger",
]
