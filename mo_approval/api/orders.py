"""Maintenance order endpoints backed by the SAP OData service.

Upstream failures are not caught here; the application-level handler for
``UpstreamError`` turns them into JSON error responses.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from mo_approval.api.dependencies import get_current_user, get_order_service
from mo_approval.models.order import (
    ApproveRequest,
    ApproveResponse,
    OrderDetailResponse,
    OrderFilters,
    OrderListResponse,
)
from mo_approval.models.user import SessionUser
from mo_approval.services.order_service import MaintenanceOrderService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/maintenance-orders", tags=["Maintenance Orders"])


@router.get("")
async def list_orders(
    plant: Optional[str] = None,
    location: Optional[str] = None,
    user: Optional[str] = None,
    order_number: Optional[str] = Query(default=None, alias="orderNumber"),
    status: Optional[str] = None,
    current_user: SessionUser = Depends(get_current_user),
    order_service: MaintenanceOrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List maintenance orders, optionally filtered."""
    filters = OrderFilters(
        plant=plant,
        location=location,
        user=user,
        order_number=order_number,
        status=status,
    )
    results = await order_service.list_orders(filters)
    return OrderListResponse(data=results, count=len(results))


@router.get("/{order_number}/{object_number}")
async def get_order(
    order_number: str,
    object_number: str,
    current_user: SessionUser = Depends(get_current_user),
    order_service: MaintenanceOrderService = Depends(get_order_service),
) -> OrderDetailResponse:
    """Get a single maintenance order header."""
    data = await order_service.get_order(order_number, object_number)
    return OrderDetailResponse(data=data)


@router.post("/approve")
async def approve_orders(
    request: ApproveRequest,
    current_user: SessionUser = Depends(get_current_user),
    order_service: MaintenanceOrderService = Depends(get_order_service),
) -> ApproveResponse:
    """Approve the selected orders."""
    approved = await order_service.approve_orders(request.orders)
    logger.info(
        "orders_approval_submitted",
        user_id=current_user.user_id,
        count=len(approved),
    )
    return ApproveResponse(
        message=f"Successfully approved {len(approved)} order(s)",
        approved_orders=approved,
    )
