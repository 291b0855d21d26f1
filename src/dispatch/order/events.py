"""Order domain events — facts about an order's fulfilment and delivery.

Events carry everything the notification handlers and read models need, so
consumers never have to load the order back.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from dispatch.domain import dispatch


@dispatch.event(part_of="Order")
class OrderPlaced:
    """A new print order was accepted at intake."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_name = String()
    customer_phone = String()
    delivery_channel = String(required=True)
    item_count = Integer(required=True)
    total_pages = Integer(required=True)
    urgent = Boolean(default=False)
    placed_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along one edge of the status graph."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_phone = String()
    from_status = String(required=True)
    to_status = String(required=True)
    actor = String(required=True)
    note = String()
    delivery_channel = String()
    assigned_agent_id = Identifier()
    tracking_url = String()
    changed_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderAgentAssigned:
    """A self-fleet agent was bound to the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    agent_name = String()
    customer_id = Identifier(required=True)
    customer_phone = String()
    previous_agent_id = Identifier()
    reassigned = Boolean(default=False)
    reason = String()
    assigned_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderAwaitingAgent:
    """No eligible agent was free; the order is parked for a later sweep."""

    __version__ = 1

    order_id = Identifier(required=True)
    status = String(required=True)
    parked_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class ShipmentCreated:
    """The courier accepted the shipment."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_phone = String()
    shipment_ref = String(required=True)
    tracking_url = String()
    created_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class CourierFallbackTriggered:
    """The courier could not take the order; it was converted to self-fleet."""

    __version__ = 1

    order_id = Identifier(required=True)
    provider_error = String(required=True)
    occurred_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class DeliveryCompleted:
    """Delivery was proven and recorded on the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_phone = String()
    delivery_channel = String(required=True)
    agent_id = Identifier()
    rating = Float()
    photo_url = String()
    delivered_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class RefundRequested:
    """A paid order was cancelled; the payment gateway must refund it."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_method = String()
    reason = String()
    requested_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class PaymentRecorded:
    """The payment gateway reported a new payment status."""

    __version__ = 1

    order_id = Identifier(required=True)
    method = String()
    status = String(required=True)
    recorded_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class FeedbackRequested:
    """The post-delivery feedback request became due and was sent."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_phone = String()
    requested_at = DateTime(required=True)
