"""Maintenance order request and response models."""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderFilters(BaseModel):
    """Optional filters for listing maintenance orders."""

    model_config = ConfigDict(populate_by_name=True)

    plant: Optional[str] = None
    location: Optional[str] = None
    user: Optional[str] = None
    order_number: Optional[str] = Field(default=None, alias="orderNumber")
    status: Optional[str] = None


class ApproveRequest(BaseModel):
    """Orders selected for approval in the UI."""

    orders: List[Any] = Field(..., min_length=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderListResponse(BaseModel):
    success: bool = True
    data: List[dict]
    count: int
    timestamp: datetime = Field(default_factory=_utcnow)


class OrderDetailResponse(BaseModel):
    success: bool = True
    data: dict
    timestamp: datetime = Field(default_factory=_utcnow)


class ApproveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    approved_orders: List[Any] = Field(alias="approvedOrders")
    timestamp: datetime = Field(default_factory=_utcnow)
