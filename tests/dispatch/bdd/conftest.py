"""Shared BDD fixtures and step definitions for the Dispatch domain."""

import pytest
from dispatch.agent.agent import Agent
from dispatch.agent.events import (
    AgentApproved,
    AgentAvailabilityChanged,
    AgentRegistered,
    AgentRejected,
    AgentSuspended,
)
from dispatch.errors import InvalidTransition
from dispatch.order.events import (
    CourierFallbackTriggered,
    DeliveryCompleted,
    OrderAgentAssigned,
    OrderPlaced,
    OrderStatusChanged,
    PaymentRecorded,
    RefundRequested,
    ShipmentCreated,
)
from dispatch.order.order import Order, OrderStatus
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

# Map event name strings to classes for dynamic lookup in Then steps
_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "OrderStatusChanged": OrderStatusChanged,
    "OrderAgentAssigned": OrderAgentAssigned,
    "ShipmentCreated": ShipmentCreated,
    "CourierFallbackTriggered": CourierFallbackTriggered,
    "DeliveryCompleted": DeliveryCompleted,
    "RefundRequested": RefundRequested,
    "PaymentRecorded": PaymentRecorded,
}

_AGENT_EVENT_CLASSES = {
    "AgentRegistered": AgentRegistered,
    "AgentApproved": AgentApproved,
    "AgentRejected": AgentRejected,
    "AgentSuspended": AgentSuspended,
    "AgentAvailabilityChanged": AgentAvailabilityChanged,
}

# Shortest admin path from Pending to each status, per delivery channel
_PATHS = {
    "self_fleet": {
        "Processing": ["Processing"],
        "Printed": ["Processing", "Printed"],
        "Out_For_Delivery": ["Processing", "Printed", "Out_For_Delivery"],
        "Not_Delivered": ["Processing", "Printed", "Out_For_Delivery", "Not_Delivered"],
        "Delivered": ["Processing", "Printed", "Out_For_Delivery", "Delivered"],
    },
    "courier": {
        "Processing": ["Processing"],
        "Printed": ["Processing", "Printed"],
        "Shipped": ["Processing", "Printed", "Shipped"],
        "Out_For_Delivery": ["Processing", "Printed", "Shipped", "Out_For_Delivery"],
        "Delivered": ["Processing", "Printed", "Shipped", "Delivered"],
    },
}


def _place(channel):
    order = Order.place(
        customer_id="cust-001",
        customer_phone="+919800000001",
        items_data=[{"name": "Lab Record", "pages": 20, "quantity": 1}],
        delivery_channel=channel,
    )
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a self-fleet print order", target_fixture="order")
def self_fleet_order():
    return _place("self_fleet")


@given("a courier print order", target_fixture="order")
def courier_order():
    return _place("courier")


@given(parsers.cfparse('agent "{agent_id}" is assigned to the order'))
def agent_assigned(order, agent_id):
    order.assign_agent(agent_id, agent_name="Ravi Kumar")
    order._events.clear()


@given(parsers.cfparse('the order is "{status}"'))
def order_at_status(order, status):
    for step in _PATHS[order.delivery_channel][status]:
        if step == "Out_For_Delivery" and order.is_self_fleet and not order.assigned_agent_id:
            order.assign_agent("agent-001", agent_name="Ravi Kumar")
        order.transition(OrderStatus(step), "admin")
    order._events.clear()


@given("the order is paid")
def order_is_paid(order):
    order.record_payment("paid", method="UPI")
    order._events.clear()


@given("a registered delivery agent", target_fixture="agent")
def registered_agent():
    agent = Agent.register(first_name="Ravi", last_name="Kumar", phone="+919800000100", city="Pune")
    agent._events.clear()
    return agent


@given("the agent is approved")
def agent_is_approved(agent):
    agent.approve()
    agent._events.clear()


@given(parsers.cfparse('the agent holds order "{order_id}"'))
def agent_holds_order(agent, order_id):
    agent.take_order(order_id)
    agent._events.clear()


# ---------------------------------------------------------------------------
# Then steps (shared)
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then("the transition is refused")
def transition_refused(error):
    assert error["exc"] is not None, "Expected the transition to be refused"
    assert isinstance(error["exc"], InvalidTransition)


@then("the action fails with a validation error")
def action_fails_with_validation_error(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the order timeline ends with "{action}"'))
def timeline_ends_with(order, action):
    assert order.sorted_timeline()[-1].action == action


@then(parsers.cfparse('the agent account status is "{status}"'))
def agent_account_status_is(agent, status):
    assert agent.account_status == status


@then(parsers.cfparse('the agent availability is "{availability}"'))
def agent_availability_is(agent, availability):
    assert agent.availability == availability


@then(parsers.cfparse("an {event_type} event is raised"))
def event_raised_an(request, event_type):
    _assert_event_raised(request, event_type)


@then(parsers.cfparse("a {event_type} event is raised"))
def event_raised_a(request, event_type):
    _assert_event_raised(request, event_type)


@then("the order raises no event")
def order_raises_no_event(order):
    assert order._events == [], f"Unexpected events: {[type(e).__name__ for e in order._events]}"


def _assert_event_raised(request, event_type):
    if event_type in _ORDER_EVENT_CLASSES:
        aggregate, event_cls = request.getfixturevalue("order"), _ORDER_EVENT_CLASSES[event_type]
    else:
        aggregate, event_cls = request.getfixturevalue("agent"), _AGENT_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in aggregate._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in aggregate._events]}"
