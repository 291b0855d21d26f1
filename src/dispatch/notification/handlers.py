"""Event handlers that turn dispatch events into push notifications.

Delivery is best-effort: a failed or crashing push is logged and never
propagates back into the transition that raised the event. Handlers only use
data carried on the event.
"""

import structlog
from protean.utils.mixins import handle

from dispatch.agent.agent import Agent
from dispatch.agent.events import AgentApproved, AgentRejected
from dispatch.domain import dispatch
from dispatch.notification import get_push
from dispatch.notification.templates import NotificationType, get_template
from dispatch.order.events import (
    FeedbackRequested,
    OrderAgentAssigned,
    OrderPlaced,
    OrderStatusChanged,
)
from dispatch.order.order import Order, OrderStatus
from dispatch.otp.delivery_otp import DeliveryOTP
from dispatch.otp.events import DeliveryOtpIssued

logger = structlog.get_logger(__name__)

# Customer-facing message per status reached
_STATUS_NOTIFICATIONS = {
    OrderStatus.PROCESSING.value: NotificationType.ORDER_PROCESSING,
    OrderStatus.SHIPPED.value: NotificationType.ORDER_SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY.value: NotificationType.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED.value: NotificationType.ORDER_DELIVERED,
    OrderStatus.NOT_DELIVERED.value: NotificationType.DELIVERY_FAILED,
    OrderStatus.RETURNED.value: NotificationType.ORDER_RETURNED,
    OrderStatus.CANCELLED.value: NotificationType.ORDER_CANCELLED,
}


def notify(recipient: str | None, notification_type: NotificationType, context: dict) -> bool:
    """Render and send one push. Returns True when the channel accepted it."""
    if not recipient:
        logger.info("Notification skipped, no recipient", notification_type=notification_type.value)
        return False

    rendered = get_template(notification_type.value).render(context)
    data = {"type": notification_type.value, **{k: v for k, v in context.items() if k != "code"}}
    try:
        result = get_push().send(recipient, rendered["title"], rendered["body"], data)
    except Exception:
        logger.exception("Push dispatch crashed", recipient=recipient, notification_type=notification_type.value)
        return False

    if result.get("status") != "sent":
        logger.warning(
            "Push dispatch failed",
            recipient=recipient,
            notification_type=notification_type.value,
            error=result.get("error"),
        )
        return False
    return True


@dispatch.event_handler(part_of=Order)
class OrderNotificationsHandler:
    """Keeps customers and agents informed as orders move."""

    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        notify(str(event.customer_id), NotificationType.ORDER_PLACED, {"order_id": str(event.order_id)})

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        notification_type = _STATUS_NOTIFICATIONS.get(event.to_status)
        if notification_type is None:
            return
        notify(
            str(event.customer_id),
            notification_type,
            {
                "order_id": str(event.order_id),
                "status": event.to_status,
                "reason": event.note,
                "tracking_url": event.tracking_url,
            },
        )

    @handle(OrderAgentAssigned)
    def on_agent_assigned(self, event: OrderAgentAssigned) -> None:
        """Tell the customer who is coming, and the agent what to deliver."""
        context = {
            "order_id": str(event.order_id),
            "agent_name": event.agent_name,
            "reassigned": bool(event.reassigned),
        }
        customer_type = NotificationType.AGENT_CHANGED if event.reassigned else NotificationType.AGENT_ASSIGNED
        notify(str(event.customer_id), customer_type, context)
        notify(str(event.agent_id), NotificationType.NEW_ASSIGNMENT, context)

    @handle(FeedbackRequested)
    def on_feedback_requested(self, event: FeedbackRequested) -> None:
        notify(str(event.customer_id), NotificationType.FEEDBACK_REQUEST, {"order_id": str(event.order_id)})


@dispatch.event_handler(part_of=DeliveryOTP)
class DeliveryCodeNotificationsHandler:
    @handle(DeliveryOtpIssued)
    def on_code_issued(self, event: DeliveryOtpIssued) -> None:
        notify(
            event.customer_phone,
            NotificationType.DELIVERY_CODE,
            {"order_id": str(event.order_id), "code": event.code},
        )


@dispatch.event_handler(part_of=Agent)
class AgentNotificationsHandler:
    @handle(AgentApproved)
    def on_approved(self, event: AgentApproved) -> None:
        notify(str(event.agent_id), NotificationType.REGISTRATION_APPROVED, {"agent_id": str(event.agent_id)})

    @handle(AgentRejected)
    def on_rejected(self, event: AgentRejected) -> None:
        notify(
            str(event.agent_id),
            NotificationType.REGISTRATION_REJECTED,
            {"agent_id": str(event.agent_id), "reason": event.reason},
        )
