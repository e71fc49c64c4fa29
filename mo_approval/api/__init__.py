"""API package exports."""

from mo_approval.api.auth import router as auth_router
from mo_approval.api.middleware import CorrelationIdMiddleware
from mo_approval.api.orders import router as orders_router
from mo_approval.api.routes import router

__all__ = ["auth_router", "orders_router", "router", "CorrelationIdMiddleware"]
