"""Order intake — command and handler.

Accepts a new print order in Pending with a fresh ``ORD…`` identifier.
"""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.order import DeliveryChannel, Order, PaymentStatus, generate_order_id

MAX_ID_ATTEMPTS = 5


@dispatch.command(part_of="Order")
class PlaceOrder:
    """Accept a print order from a customer."""

    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_phone = String(max_length=20)
    items = Text(required=True)  # JSON list of {name, pages, quantity, color_option, binding_option}
    delivery_channel = String(choices=DeliveryChannel, default=DeliveryChannel.SELF_FLEET.value)
    payment_method = String(max_length=50)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    urgent = Boolean(default=False)


def _unused_order_id(repo) -> str:
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = generate_order_id()
        try:
            repo.get(candidate)
        except ObjectNotFoundError:
            return candidate
    raise ValidationError({"order_id": ["Could not allocate a unique order id"]})


@dispatch.command_handler(part_of=Order)
class IntakeHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        repo = current_domain.repository_for(Order)
        order = Order.place(
            customer_id=command.customer_id,
            customer_name=command.customer_name,
            customer_phone=command.customer_phone,
            items_data=json.loads(command.items),
            delivery_channel=command.delivery_channel,
            payment_method=command.payment_method,
            payment_status=command.payment_status,
            urgent=command.urgent,
            order_id=_unused_order_id(repo),
        )
        repo.add(order)
        return str(order.id)
