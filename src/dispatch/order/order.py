"""Order aggregate (CQRS) — the print order and its fulfilment state machine.

The aggregate owns the status graph, the append-only timeline and every hook
that touches only the order itself. Hooks that reach other aggregates (agent
release, OTP issue, courier dispatch) live in the lifecycle engine, which
commits them with the order in one unit of work.

State Machine:
    PENDING → PROCESSING → PRINTED → {SHIPPED | OUT_FOR_DELIVERY} → DELIVERED
    SHIPPED → OUT_FOR_DELIVERY (courier)
    OUT_FOR_DELIVERY ⇄ NOT_DELIVERED (self-fleet retry)
    any non-terminal → {CANCELLED, RETURNED}
"""

import secrets
import string
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from dispatch.domain import dispatch
from dispatch.errors import InvalidTransition
from dispatch.order.events import (
    CourierFallbackTriggered,
    DeliveryCompleted,
    FeedbackRequested,
    OrderAgentAssigned,
    OrderAwaitingAgent,
    OrderPlaced,
    OrderStatusChanged,
    PaymentRecorded,
    RefundRequested,
    ShipmentCreated,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    PRINTED = "Printed"
    SHIPPED = "Shipped"
    OUT_FOR_DELIVERY = "Out_For_Delivery"
    NOT_DELIVERED = "Not_Delivered"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"


class DeliveryChannel(Enum):
    SELF_FLEET = "self_fleet"
    COURIER = "courier"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUND_PENDING = "refund_pending"
    REFUNDED = "refunded"


class ColorOption(Enum):
    BW = "bw"
    COLOR = "color"


_SIDE_BRANCHES = {OrderStatus.CANCELLED, OrderStatus.RETURNED}

_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING} | _SIDE_BRANCHES,
    OrderStatus.PROCESSING: {OrderStatus.PRINTED} | _SIDE_BRANCHES,
    OrderStatus.PRINTED: {OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY} | _SIDE_BRANCHES,
    OrderStatus.SHIPPED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED} | _SIDE_BRANCHES,
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.NOT_DELIVERED} | _SIDE_BRANCHES,
    OrderStatus.NOT_DELIVERED: {OrderStatus.OUT_FOR_DELIVERY} | _SIDE_BRANCHES,
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
    OrderStatus.RETURNED: set(),  # terminal
}

# Edges that only exist for one delivery channel
_CHANNEL_BOUND_EDGES = {
    (OrderStatus.PRINTED, OrderStatus.SHIPPED): DeliveryChannel.COURIER,
    (OrderStatus.PRINTED, OrderStatus.OUT_FOR_DELIVERY): DeliveryChannel.SELF_FLEET,
    (OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY): DeliveryChannel.COURIER,
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.NOT_DELIVERED): DeliveryChannel.SELF_FLEET,
    (OrderStatus.NOT_DELIVERED, OrderStatus.OUT_FOR_DELIVERY): DeliveryChannel.SELF_FLEET,
}

BASE_COMPLETION_MINUTES = 30
MINUTES_PER_PAGE = 2
COLOR_SURCHARGE_MINUTES = 15
BINDING_SURCHARGE_MINUTES = 10
FEEDBACK_DELAY = timedelta(hours=2)


def generate_order_id(now: datetime | None = None) -> str:
    """``ORD`` + last six digits of the epoch millis + four random alphanumerics."""
    now = now or datetime.now(UTC)
    millis = str(int(now.timestamp() * 1000))
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(4))
    return f"ORD{millis[-6:]}{suffix}"


def estimate_completion_minutes(items) -> int:
    """Production estimate derived from order content alone."""
    total_pages = sum((item.pages or 0) * (item.quantity or 0) for item in items)
    minutes = BASE_COMPLETION_MINUTES + MINUTES_PER_PAGE * total_pages
    if any(item.color_option == ColorOption.COLOR.value for item in items):
        minutes += COLOR_SURCHARGE_MINUTES
    if any(item.binding_option and item.binding_option.lower() != "none" for item in items):
        minutes += BINDING_SURCHARGE_MINUTES
    return minutes


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@dispatch.value_object(part_of="Order")
class PaymentInfo:
    """How the customer pays and where that payment stands."""

    method = String(max_length=50)
    status = String(max_length=50, choices=PaymentStatus, default=PaymentStatus.PENDING.value)


@dispatch.value_object(part_of="Order")
class DeliveryProof:
    """Evidence captured when the order was handed over."""

    photo_url = String(max_length=500)
    notes = String(max_length=1000)
    rating = Float(min_value=1.0, max_value=5.0)
    delivered_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@dispatch.entity(part_of="Order")
class OrderItem:
    """One document to print."""

    name = String(required=True, max_length=255)
    pages = Integer(required=True, min_value=1)
    quantity = Integer(required=True, min_value=1)
    color_option = String(max_length=10, choices=ColorOption, default=ColorOption.BW.value)
    binding_option = String(max_length=50, default="none")


@dispatch.entity(part_of="Order")
class TimelineEntry:
    """One audit record; entries are only ever appended."""

    sequence = Integer(required=True)
    timestamp = DateTime(required=True)
    actor = String(required=True, max_length=100)
    action = String(required=True, max_length=255)
    note = String(max_length=1000)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@dispatch.aggregate
class Order:
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_phone = String(max_length=20)
    items = HasMany(OrderItem)
    delivery_channel = String(choices=DeliveryChannel, default=DeliveryChannel.SELF_FLEET.value)
    provider_shipment_ref = String(max_length=255)
    tracking_url = String(max_length=500)
    provider_error = String(max_length=1000)
    payment = ValueObject(PaymentInfo)
    assigned_agent_id = Identifier()
    pending_agent = Boolean(default=False)
    reassigned = Boolean(default=False)
    reassignment_reason = String(max_length=500)
    urgent = Boolean(default=False)
    estimated_completion_at = DateTime()
    delivery_proof = ValueObject(DeliveryProof)
    return_reason = String(max_length=500)
    cancellation_reason = String(max_length=500)
    feedback_due_at = DateTime()
    feedback_requested_at = DateTime()
    timeline = HasMany(TimelineEntry)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id: str,
        items_data: list[dict],
        customer_name: str | None = None,
        customer_phone: str | None = None,
        delivery_channel: str = DeliveryChannel.SELF_FLEET.value,
        payment_method: str | None = None,
        payment_status: str = PaymentStatus.PENDING.value,
        urgent: bool = False,
        order_id: str | None = None,
        now: datetime | None = None,
    ):
        """Accept a new print order in Pending."""
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = now or datetime.now(UTC)
        order = cls(
            id=order_id or generate_order_id(now),
            customer_id=customer_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            delivery_channel=delivery_channel,
            payment=PaymentInfo(method=payment_method, status=payment_status),
            urgent=urgent,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(OrderItem(**item_data))
        order._record("customer", "Order placed", None, now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=customer_id,
                customer_name=customer_name,
                customer_phone=customer_phone,
                delivery_channel=delivery_channel,
                item_count=len(items_data),
                total_pages=sum(i.pages * i.quantity for i in order.items),
                urgent=urgent,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_self_fleet(self) -> bool:
        return self.delivery_channel == DeliveryChannel.SELF_FLEET.value

    @property
    def is_courier(self) -> bool:
        return self.delivery_channel == DeliveryChannel.COURIER.value

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[OrderStatus(self.status)]

    @property
    def is_paid(self) -> bool:
        return bool(self.payment) and self.payment.status == PaymentStatus.PAID.value

    def sorted_timeline(self) -> list:
        return sorted(self.timeline or [], key=lambda entry: entry.sequence)

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def can_transition_to(self, target_status: OrderStatus) -> bool:
        try:
            self.assert_can_transition(target_status)
        except InvalidTransition:
            return False
        return True

    def assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target_status.value)

        required_channel = _CHANNEL_BOUND_EDGES.get((current, target_status))
        if required_channel and self.delivery_channel != required_channel.value:
            raise InvalidTransition(
                current.value,
                target_status.value,
                f"Cannot transition from {current.value} to {target_status.value} "
                f"for a {self.delivery_channel} order",
            )

        if (
            target_status == OrderStatus.OUT_FOR_DELIVERY
            and self.is_self_fleet
            and not self.assigned_agent_id
        ):
            raise InvalidTransition(
                current.value,
                target_status.value,
                "A delivery agent must be assigned before the order can go out for delivery",
            )

    def _record(self, actor: str, action: str, note: str | None, now: datetime) -> None:
        self.add_timeline(
            TimelineEntry(
                sequence=len(self.timeline or []) + 1,
                timestamp=now,
                actor=actor,
                action=action,
                note=note,
            )
        )
        self.updated_at = now

    # -------------------------------------------------------------------
    # Transition
    # -------------------------------------------------------------------
    def transition(
        self,
        target_status: OrderStatus,
        actor: str,
        note: str | None = None,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> OrderStatus:
        """Move along one edge and run the order-local hooks for the new status.

        Returns the status the order left.
        """
        self.assert_can_transition(target_status)
        now = now or datetime.now(UTC)
        previous = OrderStatus(self.status)
        self.status = target_status.value

        if target_status == OrderStatus.PROCESSING:
            self.estimated_completion_at = now + timedelta(minutes=estimate_completion_minutes(self.items or []))
        elif target_status == OrderStatus.CANCELLED:
            self.cancellation_reason = reason or note
            if self.is_paid:
                self.payment = PaymentInfo(method=self.payment.method, status=PaymentStatus.REFUND_PENDING.value)
                self.raise_(
                    RefundRequested(
                        order_id=str(self.id),
                        customer_id=str(self.customer_id),
                        payment_method=self.payment.method,
                        reason=self.cancellation_reason,
                        requested_at=now,
                    )
                )
        elif target_status == OrderStatus.RETURNED:
            self.return_reason = reason or note

        self._record(actor, f"Status changed to {target_status.value}", note or reason, now)
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                customer_phone=self.customer_phone,
                from_status=previous.value,
                to_status=target_status.value,
                actor=actor,
                note=note or reason,
                delivery_channel=self.delivery_channel,
                assigned_agent_id=self.assigned_agent_id,
                tracking_url=self.tracking_url,
                changed_at=now,
            )
        )
        return previous

    # -------------------------------------------------------------------
    # Agent assignment
    # -------------------------------------------------------------------
    def assign_agent(
        self,
        agent_id: str,
        agent_name: str | None = None,
        reason: str | None = None,
        reassignment: bool = False,
        now: datetime | None = None,
    ) -> None:
        if not self.is_self_fleet:
            raise ValidationError({"delivery_channel": ["Only self-fleet orders can be assigned to an agent"]})
        if self.is_terminal:
            raise ValidationError({"status": [f"Cannot assign an agent to a {self.status} order"]})

        now = now or datetime.now(UTC)
        previous_agent_id = self.assigned_agent_id
        self.assigned_agent_id = agent_id
        self.pending_agent = False
        if reassignment:
            self.reassigned = True
            self.reassignment_reason = reason
        self._record(
            "system" if not reassignment else "admin",
            "Agent reassigned" if reassignment else "Agent assigned",
            f"{agent_name or agent_id}" + (f": {reason}" if reason else ""),
            now,
        )
        self.raise_(
            OrderAgentAssigned(
                order_id=str(self.id),
                agent_id=agent_id,
                agent_name=agent_name,
                customer_id=str(self.customer_id),
                customer_phone=self.customer_phone,
                previous_agent_id=previous_agent_id if reassignment else None,
                reassigned=reassignment,
                reason=reason,
                assigned_at=now,
            )
        )

    def park_awaiting_agent(self, now: datetime | None = None) -> bool:
        """Flag the order for a later sweep. Returns False when it was already parked."""
        if self.pending_agent:
            return False
        now = now or datetime.now(UTC)
        self.pending_agent = True
        self._record("system", "Awaiting delivery agent", "No delivery agent available", now)
        self.raise_(OrderAwaitingAgent(order_id=str(self.id), status=self.status, parked_at=now))
        return True

    # -------------------------------------------------------------------
    # Courier
    # -------------------------------------------------------------------
    def record_shipment(self, shipment_ref: str, tracking_url: str | None, now: datetime | None = None) -> None:
        if not self.is_courier:
            raise ValidationError({"delivery_channel": ["Only courier orders carry a shipment"]})
        now = now or datetime.now(UTC)
        self.provider_shipment_ref = shipment_ref
        self.tracking_url = tracking_url
        self._record("system", "Shipment created", f"Shipment {shipment_ref}", now)
        self.raise_(
            ShipmentCreated(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                customer_phone=self.customer_phone,
                shipment_ref=shipment_ref,
                tracking_url=tracking_url,
                created_at=now,
            )
        )

    def fall_back_to_self_fleet(self, provider_error: str, now: datetime | None = None) -> None:
        """One-way switch from courier to self-fleet after a failed shipment."""
        if not self.is_courier:
            raise ValidationError({"delivery_channel": ["Only courier orders can fall back to self-fleet"]})
        now = now or datetime.now(UTC)
        self.delivery_channel = DeliveryChannel.SELF_FLEET.value
        self.provider_error = provider_error
        self._record("system", "Courier fallback", provider_error, now)
        self.raise_(
            CourierFallbackTriggered(
                order_id=str(self.id),
                provider_error=provider_error,
                occurred_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    def record_delivery(
        self,
        photo_url: str | None = None,
        notes: str | None = None,
        rating: float | None = None,
        now: datetime | None = None,
    ) -> None:
        """Attach delivery proof once the order is Delivered."""
        if OrderStatus(self.status) != OrderStatus.DELIVERED:
            raise ValidationError({"status": ["Delivery proof can only be recorded on a delivered order"]})
        now = now or datetime.now(UTC)
        self.delivery_proof = DeliveryProof(photo_url=photo_url, notes=notes, rating=rating, delivered_at=now)
        self.feedback_due_at = now + FEEDBACK_DELAY
        self.updated_at = now
        self.raise_(
            DeliveryCompleted(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                customer_phone=self.customer_phone,
                delivery_channel=self.delivery_channel,
                agent_id=self.assigned_agent_id,
                rating=rating,
                photo_url=photo_url,
                delivered_at=now,
            )
        )

    def request_feedback(self, now: datetime | None = None) -> None:
        if self.feedback_requested_at:
            raise ValidationError({"feedback_requested_at": ["Feedback has already been requested"]})
        now = now or datetime.now(UTC)
        self.feedback_requested_at = now
        self.updated_at = now
        self.raise_(
            FeedbackRequested(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                customer_phone=self.customer_phone,
                requested_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment(self, status: str, method: str | None = None, now: datetime | None = None) -> None:
        if status not in {s.value for s in PaymentStatus}:
            raise ValidationError({"payment_status": [f"Unknown payment status: {status}"]})
        now = now or datetime.now(UTC)
        method = method or (self.payment.method if self.payment else None)
        self.payment = PaymentInfo(method=method, status=status)
        self._record("payment", f"Payment {status}", method, now)
        self.raise_(
            PaymentRecorded(
                order_id=str(self.id),
                method=method,
                status=status,
                recorded_at=now,
            )
        )
