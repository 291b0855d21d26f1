"""Delivery analytics — daily order outcomes per delivery channel."""

from datetime import datetime

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.events import (
    CourierFallbackTriggered,
    DeliveryCompleted,
    OrderPlaced,
    OrderStatusChanged,
)
from dispatch.order.order import DeliveryChannel, Order, OrderStatus


@dispatch.projection
class DeliveryAnalyticsView:
    """Counts per (date, channel); the channel is the one in force at the event."""

    id = Identifier(identifier=True)
    date = String(required=True)  # ISO date string YYYY-MM-DD
    channel = String(required=True)
    orders_placed = Integer(default=0)
    shipped = Integer(default=0)
    out_for_delivery = Integer(default=0)
    delivered = Integer(default=0)
    not_delivered = Integer(default=0)
    cancelled = Integer(default=0)
    returned = Integer(default=0)
    courier_fallbacks = Integer(default=0)
    rating_total = Float(default=0.0)
    rating_count = Integer(default=0)

    @property
    def average_rating(self) -> float:
        return round(self.rating_total / self.rating_count, 2) if self.rating_count else 0.0


_STATUS_COUNTERS = {
    OrderStatus.SHIPPED.value: "shipped",
    OrderStatus.OUT_FOR_DELIVERY.value: "out_for_delivery",
    OrderStatus.DELIVERED.value: "delivered",
    OrderStatus.NOT_DELIVERED.value: "not_delivered",
    OrderStatus.CANCELLED.value: "cancelled",
    OrderStatus.RETURNED.value: "returned",
}


def _date_key(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d") if dt else ""


def _bump(when: datetime, channel: str, counter: str, amount: int = 1):
    date_str = _date_key(when)
    record_id = f"{date_str}-{channel}"
    repo = current_domain.repository_for(DeliveryAnalyticsView)
    try:
        view = repo.get(record_id)
    except ObjectNotFoundError:
        view = DeliveryAnalyticsView(id=record_id, date=date_str, channel=channel)
    setattr(view, counter, (getattr(view, counter) or 0) + amount)
    repo.add(view)
    return view


@dispatch.projector(projector_for=DeliveryAnalyticsView, aggregates=[Order])
class DeliveryAnalyticsProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        _bump(event.placed_at, event.delivery_channel, "orders_placed")

    @on(OrderStatusChanged)
    def on_status_changed(self, event):
        counter = _STATUS_COUNTERS.get(event.to_status)
        if counter:
            _bump(event.changed_at, event.delivery_channel or DeliveryChannel.SELF_FLEET.value, counter)

    @on(CourierFallbackTriggered)
    def on_courier_fallback(self, event):
        _bump(event.occurred_at, DeliveryChannel.COURIER.value, "courier_fallbacks")

    @on(DeliveryCompleted)
    def on_delivery_completed(self, event):
        if event.rating is None:
            return
        view = _bump(event.delivered_at, event.delivery_channel, "rating_count")
        view.rating_total = (view.rating_total or 0.0) + event.rating
        current_domain.repository_for(DeliveryAnalyticsView).add(view)
