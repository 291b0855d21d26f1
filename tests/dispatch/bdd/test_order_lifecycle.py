"""BDD tests for the print order lifecycle."""

from datetime import timedelta

from dispatch.order.order import OrderStatus
from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_lifecycle.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the order moves to "{status}"'))
def move_order(order, status, error):
    try:
        order.transition(OrderStatus(status), "admin")
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('shipment "{shipment_ref}" is recorded'))
def record_shipment(order, shipment_ref):
    order.record_shipment(shipment_ref, f"https://track.example.com/{shipment_ref}")


@when(parsers.cfparse('the courier booking fails with "{provider_error}"'))
def courier_booking_fails(order, provider_error):
    order.fall_back_to_self_fleet(provider_error)


@when(parsers.cfparse("delivery proof is recorded with rating {rating:g}"))
def record_delivery_proof(order, rating, error):
    try:
        order.record_delivery(photo_url="https://cdn.example.com/proof.jpg", rating=rating)
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the order has an estimated completion time")
def has_estimate(order):
    assert order.estimated_completion_at is not None


@then(parsers.cfparse('the order shipment reference is "{shipment_ref}"'))
def shipment_reference_is(order, shipment_ref):
    assert order.provider_shipment_ref == shipment_ref


@then(parsers.cfparse('the order delivery channel is "{channel}"'))
def delivery_channel_is(order, channel):
    assert order.delivery_channel == channel


@then("feedback is due two hours after delivery")
def feedback_due(order):
    assert order.feedback_due_at == order.delivery_proof.delivered_at + timedelta(hours=2)
