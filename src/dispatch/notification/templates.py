"""Message templates — one per notification type.

Each template renders a title and body from the event context.
"""

from enum import Enum


class NotificationType(Enum):
    ORDER_PLACED = "OrderPlaced"
    ORDER_PROCESSING = "OrderProcessing"
    AGENT_ASSIGNED = "AgentAssigned"
    AGENT_CHANGED = "AgentChanged"
    NEW_ASSIGNMENT = "NewAssignment"
    ORDER_SHIPPED = "OrderShipped"
    OUT_FOR_DELIVERY = "OutForDelivery"
    DELIVERY_CODE = "DeliveryCode"
    ORDER_DELIVERED = "OrderDelivered"
    DELIVERY_FAILED = "DeliveryFailed"
    ORDER_RETURNED = "OrderReturned"
    ORDER_CANCELLED = "OrderCancelled"
    FEEDBACK_REQUEST = "FeedbackRequest"
    REGISTRATION_APPROVED = "RegistrationApproved"
    REGISTRATION_REJECTED = "RegistrationRejected"


class OrderPlacedTemplate:
    notification_type = NotificationType.ORDER_PLACED.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Order Received",
            "body": f"We have received your order #{context.get('order_id', 'N/A')} and will start printing soon.",
        }


class OrderProcessingTemplate:
    notification_type = NotificationType.ORDER_PROCESSING.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Order in Production",
            "body": f"Your order #{context.get('order_id', 'N/A')} is being printed.",
        }


class AgentAssignedTemplate:
    notification_type = NotificationType.AGENT_ASSIGNED.value

    @staticmethod
    def render(context: dict) -> dict:
        agent = context.get("agent_name") or "A delivery agent"
        return {
            "title": "Delivery Agent Assigned",
            "body": f"{agent} has been assigned to deliver your order #{context.get('order_id', 'N/A')}",
        }


class AgentChangedTemplate:
    notification_type = NotificationType.AGENT_CHANGED.value

    @staticmethod
    def render(context: dict) -> dict:
        agent = context.get("agent_name") or "A new delivery agent"
        return {
            "title": "Delivery Agent Changed",
            "body": f"{agent} is now assigned to deliver your order #{context.get('order_id', 'N/A')}",
        }


class NewAssignmentTemplate:
    notification_type = NotificationType.NEW_ASSIGNMENT.value

    @staticmethod
    def render(context: dict) -> dict:
        body = f"You have been assigned order #{context.get('order_id', 'N/A')} for delivery"
        if context.get("reassigned"):
            body += " (reassigned)"
        return {"title": "New Delivery Assignment", "body": body}


class OrderShippedTemplate:
    notification_type = NotificationType.ORDER_SHIPPED.value

    @staticmethod
    def render(context: dict) -> dict:
        body = f"Your order #{context.get('order_id', 'N/A')} has been shipped via courier and will be delivered soon!"
        if context.get("tracking_url"):
            body += f"\nTrack it here: {context['tracking_url']}"
        return {"title": "Order Shipped", "body": body}


class OutForDeliveryTemplate:
    notification_type = NotificationType.OUT_FOR_DELIVERY.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Out for Delivery",
            "body": f"Your order #{context.get('order_id', 'N/A')} is out for delivery and will arrive soon!",
        }


class DeliveryCodeTemplate:
    notification_type = NotificationType.DELIVERY_CODE.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Your Delivery Code",
            "body": (
                f"Share code {context.get('code')} with the delivery agent to receive "
                f"order #{context.get('order_id', 'N/A')}. It expires in 30 minutes."
            ),
        }


class OrderDeliveredTemplate:
    notification_type = NotificationType.ORDER_DELIVERED.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Order Delivered!",
            "body": f"Your order #{context.get('order_id', 'N/A')} has been successfully delivered!",
        }


class DeliveryFailedTemplate:
    notification_type = NotificationType.DELIVERY_FAILED.value

    @staticmethod
    def render(context: dict) -> dict:
        reason = context.get("reason") or "We will try again soon."
        return {
            "title": "Delivery Failed",
            "body": f"Delivery attempt for order #{context.get('order_id', 'N/A')} failed. {reason}",
        }


class OrderReturnedTemplate:
    notification_type = NotificationType.ORDER_RETURNED.value

    @staticmethod
    def render(context: dict) -> dict:
        reason = context.get("reason") or ""
        return {
            "title": "Order Returned",
            "body": f"Your order #{context.get('order_id', 'N/A')} has been returned. {reason}".strip(),
        }


class OrderCancelledTemplate:
    notification_type = NotificationType.ORDER_CANCELLED.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Order Cancelled",
            "body": f"Your order #{context.get('order_id', 'N/A')} has been cancelled.",
        }


class FeedbackRequestTemplate:
    notification_type = NotificationType.FEEDBACK_REQUEST.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "How did we do?",
            "body": f"Tell us about your order #{context.get('order_id', 'N/A')} and rate your delivery.",
        }


class RegistrationApprovedTemplate:
    notification_type = NotificationType.REGISTRATION_APPROVED.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Registration Approved!",
            "body": (
                "Your agent registration has been approved. "
                "You can now start receiving delivery assignments."
            ),
        }


class RegistrationRejectedTemplate:
    notification_type = NotificationType.REGISTRATION_REJECTED.value

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Registration Update",
            "body": f"Your agent registration could not be approved. Reason: {context.get('reason', 'N/A')}",
        }


TEMPLATE_REGISTRY: dict[str, type] = {
    template.notification_type: template
    for template in (
        OrderPlacedTemplate,
        OrderProcessingTemplate,
        AgentAssignedTemplate,
        AgentChangedTemplate,
        NewAssignmentTemplate,
        OrderShippedTemplate,
        OutForDeliveryTemplate,
        DeliveryCodeTemplate,
        OrderDeliveredTemplate,
        DeliveryFailedTemplate,
        OrderReturnedTemplate,
        OrderCancelledTemplate,
        FeedbackRequestTemplate,
        RegistrationApprovedTemplate,
        RegistrationRejectedTemplate,
    )
}


def get_template(notification_type: str):
    """Look up a template class by notification type string."""
    template_cls = TEMPLATE_REGISTRY.get(notification_type)
    if template_cls is None:
        raise ValueError(f"No template registered for notification type: {notification_type}")
    return template_cls
