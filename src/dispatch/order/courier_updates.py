"""Courier status callbacks — command and handler."""

from protean import handle
from protean.fields import String

from dispatch.domain import dispatch
from dispatch.lifecycle.engine import OrderLifecycleEngine
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class HandleCourierStatus:
    """A courier reported a new status for one of its shipments."""

    shipment_ref = String(required=True, max_length=255)
    provider_status = String(required=True, max_length=100)
    tracking_code = String(max_length=255)


@dispatch.command_handler(part_of=Order)
class CourierUpdateHandler:
    @handle(HandleCourierStatus)
    def handle_status(self, command):
        order = OrderLifecycleEngine().handle_provider_status(
            command.shipment_ref,
            command.provider_status,
            tracking_code=command.tracking_code,
        )
        return order.status if order else None
