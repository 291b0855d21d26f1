"""Order lifecycle engine — the one place order status changes.

The engine validates a transition against the status graph, runs the hooks
that reach beyond the order (agent release and counters, delivery codes,
courier dispatch with self-fleet fallback) and writes every touched aggregate
through its repository. Command handlers call it inside a unit of work, so a
transition and all its hook writes commit together.

Collaborators are injected: a courier adapter, an assignment scheduler, a
delivery-code service and a clock. Defaults come from configuration.
"""

from collections.abc import Callable
from datetime import datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from dispatch.agent.directory import AgentDirectory
from dispatch.assignment.scheduler import AssignmentScheduler
from dispatch.courier import get_courier
from dispatch.courier.port import CourierPort, shipment_snapshot
from dispatch.errors import InvalidTransition, ProviderUnavailable
from dispatch.order.order import Order, OrderStatus
from dispatch.otp.service import DeliveryOtpService
from dispatch.utils.clock import as_utc, utc_now

logger = structlog.get_logger(__name__)

SYSTEM_ACTOR = "system"
COURIER_ACTOR = "courier"


class OrderLifecycleEngine:
    def __init__(
        self,
        courier: CourierPort | None = None,
        scheduler: AssignmentScheduler | None = None,
        otp_service: DeliveryOtpService | None = None,
        clock: Callable[[], datetime] | None = None,
        directory: AgentDirectory | None = None,
    ):
        self.clock = clock or utc_now
        self.courier = courier or get_courier()
        self.directory = directory or AgentDirectory()
        self.scheduler = scheduler or AssignmentScheduler(directory=self.directory, clock=self.clock)
        self.otp_service = otp_service or DeliveryOtpService(clock=self.clock)

    @property
    def orders(self):
        return current_domain.repository_for(Order)

    # -------------------------------------------------------------------
    # Transition
    # -------------------------------------------------------------------
    def transition(
        self,
        order_id: str,
        target_status: OrderStatus | str,
        actor: str,
        note: str | None = None,
        customer_otp: str | None = None,
        photo_url: str | None = None,
        proof_notes: str | None = None,
        rating: float | None = None,
        reason: str | None = None,
    ) -> Order:
        order = self.orders.get(order_id)
        return self.apply(
            order,
            target_status,
            actor,
            note=note,
            customer_otp=customer_otp,
            photo_url=photo_url,
            proof_notes=proof_notes,
            rating=rating,
            reason=reason,
        )

    def apply(
        self,
        order: Order,
        target_status: OrderStatus | str,
        actor: str,
        note: str | None = None,
        customer_otp: str | None = None,
        photo_url: str | None = None,
        proof_notes: str | None = None,
        rating: float | None = None,
        reason: str | None = None,
    ) -> Order:
        target = _as_status(target_status)
        try:
            order.assert_can_transition(target)
        except InvalidTransition:
            logger.warning(
                "Transition rejected",
                order_id=str(order.id),
                from_status=order.status,
                to_status=target.value,
                actor=actor,
            )
            raise

        now = self.clock()
        if target == OrderStatus.DELIVERED and order.is_self_fleet:
            # Fails closed: nothing on the order has changed yet
            self.otp_service.validate(str(order.id), customer_otp, now=now)

        previous = order.transition(target, actor, note=note, reason=reason, now=now)
        self.orders.add(order)
        logger.info(
            "Order transitioned",
            order_id=str(order.id),
            from_status=previous.value,
            to_status=target.value,
            actor=actor,
        )

        if target == OrderStatus.PRINTED:
            self.dispatch(order)
        elif target == OrderStatus.OUT_FOR_DELIVERY and order.is_self_fleet:
            self.otp_service.issue(str(order.id), str(order.assigned_agent_id), order.customer_phone, now=now)
        elif target == OrderStatus.DELIVERED:
            order.record_delivery(photo_url=photo_url, notes=proof_notes, rating=rating, now=now)
            self.orders.add(order)
            if order.is_self_fleet:
                self._complete_agent_delivery(order, rating, now)
        elif target in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
            if order.assigned_agent_id:
                self.scheduler.release(str(order.assigned_agent_id), order_id=str(order.id), now=now)

        return order

    def _complete_agent_delivery(self, order: Order, rating: float | None, now: datetime) -> None:
        agent = self.directory.find(str(order.assigned_agent_id) if order.assigned_agent_id else None)
        if agent is None:
            logger.warning("Delivered order has no agent to credit", order_id=str(order.id))
            return
        agent.release(order_id=str(order.id), now=now)
        agent.record_delivery_completed(str(order.id), rating=rating, now=now)
        self.directory.save(agent)

    # -------------------------------------------------------------------
    # Delivery channel kickoff
    # -------------------------------------------------------------------
    def dispatch(self, order: Order) -> Order:
        """Hand a printed order to its delivery channel.

        Courier failures convert the order to self-fleet once and continue
        with agent assignment; they are never surfaced to the caller.
        """
        now = self.clock()
        if order.is_self_fleet:
            self.scheduler.assign(order, now=now)
            return order

        try:
            shipment = self.courier.create_shipment(shipment_snapshot(order))
        except ProviderUnavailable as exc:
            logger.warning("Courier unavailable, falling back to self-fleet", order_id=str(order.id), error=str(exc))
            order.fall_back_to_self_fleet(str(exc), now=now)
            self.orders.add(order)
            self.scheduler.assign(order, now=now)
            return order

        order.record_shipment(shipment["shipment_ref"], shipment.get("tracking_url"), now=now)
        self.orders.add(order)
        return self.apply(order, OrderStatus.SHIPPED, SYSTEM_ACTOR, note=f"Shipment {shipment['shipment_ref']} created")

    def dispatch_order(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if OrderStatus(order.status) != OrderStatus.PRINTED:
            raise ValidationError({"status": ["Only printed orders can be dispatched"]})
        return self.dispatch(order)

    # -------------------------------------------------------------------
    # Courier webhook
    # -------------------------------------------------------------------
    def handle_provider_status(
        self,
        shipment_ref: str,
        provider_status: str,
        tracking_code: str | None = None,
    ) -> Order | None:
        """Apply a courier status callback. Returns None when nothing changed."""
        target = self.courier.map_status(provider_status)
        if target is None:
            logger.info("Ignoring unknown courier status", shipment_ref=shipment_ref, provider_status=provider_status)
            return None

        results = self.orders._dao.query.filter(provider_shipment_ref=shipment_ref).all()
        if not results.items:
            logger.warning("Courier update for unknown shipment", shipment_ref=shipment_ref)
            return None

        order = results.first
        if order.status == target.value:
            logger.info("Courier status already applied", order_id=str(order.id), status=order.status)
            return None
        if not order.can_transition_to(target):
            logger.warning(
                "Courier update skipped, illegal transition",
                order_id=str(order.id),
                from_status=order.status,
                to_status=target.value,
            )
            return None

        note = f"Courier reported {provider_status}"
        if tracking_code:
            note = f"{note} ({tracking_code})"
        return self.apply(order, target, COURIER_ACTOR, note=note)

    # -------------------------------------------------------------------
    # Follow-ups
    # -------------------------------------------------------------------
    def send_due_feedback_requests(self, as_of: datetime | None = None) -> list[str]:
        as_of = as_utc(as_of or self.clock())
        results = self.orders._dao.query.filter(status=OrderStatus.DELIVERED.value).all()

        requested = []
        for order in results.items:
            if order.feedback_requested_at or not order.feedback_due_at:
                continue
            if as_utc(order.feedback_due_at) > as_of:
                continue
            order.request_feedback(now=as_of)
            self.orders.add(order)
            requested.append(str(order.id))

        logger.info("Feedback sweep finished", requested=len(requested))
        return requested


def _as_status(value: OrderStatus | str) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"target_status": [f"Unknown order status: {value}"]}) from None
