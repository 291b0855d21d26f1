"""Payment status updates from the gateway — command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.order import Order, PaymentStatus


@dispatch.command(part_of="Order")
class RecordPayment:
    order_id = Identifier(required=True)
    status = String(required=True, choices=PaymentStatus)
    method = String(max_length=50)


@dispatch.command_handler(part_of=Order)
class PaymentHandler:
    @handle(RecordPayment)
    def record_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_payment(command.status, method=command.method)
        repo.add(order)
