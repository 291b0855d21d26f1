"""Order status changes — command and handler.

All status changes go through the lifecycle engine, which also runs the
cross-aggregate hooks for the new status.
"""

from protean import handle
from protean.fields import Float, Identifier, String

from dispatch.domain import dispatch
from dispatch.lifecycle.engine import OrderLifecycleEngine
from dispatch.order.order import Order, OrderStatus


@dispatch.command(part_of="Order")
class TransitionOrder:
    """Move an order to a new status."""

    order_id = Identifier(required=True)
    target_status = String(required=True, choices=OrderStatus)
    actor = String(required=True, max_length=100)
    note = String(max_length=1000)
    reason = String(max_length=500)
    customer_otp = String(max_length=10)
    photo_url = String(max_length=500)
    proof_notes = String(max_length=1000)
    rating = Float(min_value=1.0, max_value=5.0)


@dispatch.command_handler(part_of=Order)
class StatusHandler:
    @handle(TransitionOrder)
    def transition(self, command):
        order = OrderLifecycleEngine().transition(
            command.order_id,
            command.target_status,
            command.actor,
            note=command.note,
            customer_otp=command.customer_otp,
            photo_url=command.photo_url,
            proof_notes=command.proof_notes,
            rating=command.rating,
            reason=command.reason,
        )
        return order.status
