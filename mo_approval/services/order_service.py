"""Maintenance order queries against the MO_APPROVAL OData entity set."""

from typing import Any, Optional
from urllib.parse import quote

import structlog

from mo_approval.models.order import OrderFilters
from mo_approval.services.sap_client import SapClient

logger = structlog.get_logger(__name__)

ENTITY_SET = "MO_APPROVAL_HEADERSet"

# Query filter name -> OData property
FILTER_FIELDS = (
    ("order_number", "OrderNumber"),
    ("plant", "Plant"),
    ("location", "FunctionalLocation"),
    ("user", "ApproverUsername"),
    ("status", "Status"),
)


def _quote(value: str) -> str:
    """Quote a value as an OData string literal."""
    return "'" + value.replace("'", "''") + "'"


def _key_literal(value: str) -> str:
    """Quote a key value and percent-encode it for use in a URL path."""
    return quote(_quote(value), safe="'")


def build_filter(filters: OrderFilters) -> Optional[str]:
    """Build an OData ``$filter`` expression, or None if no filter is set."""
    parts = []
    for attr, field in FILTER_FIELDS:
        value = getattr(filters, attr)
        if value:
            parts.append(f"{field} eq {_quote(value)}")
    return " and ".join(parts) if parts else None


def build_list_params(filters: OrderFilters) -> dict[str, str]:
    """Query options for the order list; httpx encodes them."""
    params = {"$format": "json"}
    expression = build_filter(filters)
    if expression:
        params["$filter"] = expression
    return params


def build_detail_endpoint(order_number: str, object_number: str) -> str:
    return (
        f"/{ENTITY_SET}(OrderNumber={_key_literal(order_number)},"
        f"ObjectNumber={_key_literal(object_number)})"
    )


class MaintenanceOrderService:
    """Reads maintenance orders from SAP and records approvals."""

    def __init__(self, sap_client: SapClient):
        self.sap_client = sap_client

    async def list_orders(self, filters: OrderFilters) -> list[dict]:
        """Fetch orders matching the given filters."""
        params = build_list_params(filters)
        logger.info("orders_fetch", filter=params.get("$filter"))

        response = await self.sap_client.get(f"/{ENTITY_SET}", params=params)
        results = (response.json().get("d") or {}).get("results") or []

        logger.info("orders_fetched", count=len(results))
        return results

    async def get_order(self, order_number: str, object_number: str) -> dict:
        """Fetch a single order header."""
        response = await self.sap_client.get(
            build_detail_endpoint(order_number, object_number),
            params={"$format": "json"},
        )
        logger.info(
            "order_fetched", order_number=order_number, object_number=object_number
        )
        return response.json().get("d") or {}

    async def approve_orders(self, orders: list[Any]) -> list[Any]:
        """Acknowledge the orders selected for approval.

        The approval itself is carried out by the SAP workflow; this only
        records which orders the user submitted.
        """
        if not orders:
            raise ValueError("Invalid request: orders array is required")
        logger.info("orders_approved", count=len(orders))
        return list(orders)
