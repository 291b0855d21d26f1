"""Courier port — abstract interface for third-party courier integrations.

The lifecycle engine programs against this port; adapters are swapped via
configuration. Adapters raise ``ProviderUnavailable`` for any failure to
create a shipment, including timeouts.
"""

from abc import ABC, abstractmethod

from dispatch.order.order import OrderStatus

# Provider status vocabulary -> order status. Anything else is ignored.
PROVIDER_STATUS_MAP = {
    "shipped": OrderStatus.SHIPPED,
    "in_transit": OrderStatus.SHIPPED,
    "out_for_delivery": OrderStatus.OUT_FOR_DELIVERY,
    "delivered": OrderStatus.DELIVERED,
    "returned": OrderStatus.RETURNED,
    "cancelled": OrderStatus.CANCELLED,
}


def shipment_snapshot(order) -> dict:
    """The order fields a courier needs, detached from the aggregate."""
    return {
        "order_id": str(order.id),
        "order_date": order.created_at.date().isoformat() if order.created_at else None,
        "customer_name": order.customer_name or "",
        "customer_phone": order.customer_phone or "",
        "urgent": bool(order.urgent),
        "payment_method": order.payment.method if order.payment else None,
        "items": [
            {"name": item.name, "pages": item.pages, "quantity": item.quantity}
            for item in (order.items or [])
        ],
    }


class CourierPort(ABC):
    """Abstract interface for courier adapters."""

    name = "courier"

    @abstractmethod
    def create_shipment(self, snapshot: dict) -> dict:
        """Create a shipment for the order snapshot.

        Returns:
            dict with keys: shipment_ref, tracking_url

        Raises:
            ProviderUnavailable: the provider rejected the request, failed or timed out.
        """
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook callback is authentic."""
        ...

    def map_status(self, provider_status: str | None) -> OrderStatus | None:
        """Translate a provider status; unknown statuses map to None."""
        if not provider_status:
            return None
        return PROVIDER_STATUS_MAP.get(provider_status.strip().lower().replace(" ", "_").replace("-", "_"))
