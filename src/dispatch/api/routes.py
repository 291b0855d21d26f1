"""FastAPI routes for the Dispatch domain — orders, agents, assignment, courier."""

import json

from fastapi import APIRouter, Header, HTTPException
from protean.utils.globals import current_domain

from dispatch.agent.availability import UpdateAgentAvailability, UpdateAgentLocation, bulk_update_agents
from dispatch.agent.onboarding import ApproveAgent, RegisterAgent, RejectAgent, SuspendAgent
from dispatch.api.schemas import (
    AgentAvailabilityRequest,
    AgentIdResponse,
    AgentLocationRequest,
    AssignmentResponse,
    BulkAgentResponse,
    BulkAvailabilityRequest,
    BulkOrderResponse,
    BulkStatusRequest,
    CourierWebhookRequest,
    FeedbackSweepRequest,
    FeedbackSweepResponse,
    OrderIdResponse,
    OrderStatusResponse,
    PlaceOrderRequest,
    ReassignRequest,
    RecordPaymentRequest,
    RegisterAgentRequest,
    RejectAgentRequest,
    ReleaseAgentRequest,
    ReleaseResponse,
    StatusResponse,
    SuspendAgentRequest,
    SweepRequest,
    SweepResponse,
    TransitionOrderRequest,
    WebhookResponse,
)
from dispatch.assignment.commands import AssignOrder, ReassignOrder, ReleaseAgent, RunAutoAssignSweep
from dispatch.courier import get_courier
from dispatch.order.bulk import bulk_update_orders
from dispatch.order.courier_updates import HandleCourierStatus
from dispatch.order.feedback import SendDueFeedbackRequests
from dispatch.order.intake import PlaceOrder
from dispatch.order.order import Order
from dispatch.order.payment import RecordPayment
from dispatch.order.status import TransitionOrder
from dispatch.utils.writes import process_with_retry

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest) -> OrderIdResponse:
    """Accept a new print order."""
    command = PlaceOrder(
        customer_id=body.customer_id,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        items=json.dumps([item.model_dump() for item in body.items]),
        delivery_channel=body.delivery_channel,
        payment_method=body.payment_method,
        payment_status=body.payment_status,
        urgent=body.urgent,
    )
    order_id = process_with_retry(command)
    return OrderIdResponse(order_id=order_id)


@order_router.put("/{order_id}/status", response_model=OrderStatusResponse)
async def transition_order(order_id: str, body: TransitionOrderRequest) -> OrderStatusResponse:
    """Move an order to a new status; delivery of self-fleet orders needs the customer's code."""
    command = TransitionOrder(order_id=order_id, **body.model_dump(exclude_none=True))
    status = process_with_retry(command)
    return OrderStatusResponse(order_id=order_id, status=status)


@order_router.put("/{order_id}/payment", response_model=StatusResponse)
async def record_payment(order_id: str, body: RecordPaymentRequest) -> StatusResponse:
    command = RecordPayment(order_id=order_id, status=body.status, method=body.method)
    process_with_retry(command)
    return StatusResponse(status="payment_recorded")


@order_router.post("/bulk-status", response_model=BulkOrderResponse)
async def bulk_status(body: BulkStatusRequest) -> BulkOrderResponse:
    """Apply one status to many orders; failures are reported per order."""
    summary = bulk_update_orders(body.order_ids, body.target_status, body.actor, note=body.note)
    return BulkOrderResponse(**summary)


@order_router.post("/feedback/sweep", response_model=FeedbackSweepResponse)
async def feedback_sweep(body: FeedbackSweepRequest | None = None) -> FeedbackSweepResponse:
    command = SendDueFeedbackRequests(as_of=body.as_of if body else None)
    requested = process_with_retry(command)
    return FeedbackSweepResponse(requested=requested)


# ---------------------------------------------------------------------------
# Agent Router
# ---------------------------------------------------------------------------
agent_router = APIRouter(prefix="/agents", tags=["agents"])


@agent_router.post("", status_code=201, response_model=AgentIdResponse)
async def register_agent(body: RegisterAgentRequest) -> AgentIdResponse:
    agent_id = process_with_retry(RegisterAgent(**body.model_dump()))
    return AgentIdResponse(agent_id=agent_id)


@agent_router.put("/{agent_id}/approve", response_model=StatusResponse)
async def approve_agent(agent_id: str) -> StatusResponse:
    process_with_retry(ApproveAgent(agent_id=agent_id))
    return StatusResponse(status="approved")


@agent_router.put("/{agent_id}/reject", response_model=StatusResponse)
async def reject_agent(agent_id: str, body: RejectAgentRequest) -> StatusResponse:
    process_with_retry(RejectAgent(agent_id=agent_id, reason=body.reason))
    return StatusResponse(status="rejected")


@agent_router.put("/{agent_id}/suspend", response_model=StatusResponse)
async def suspend_agent(agent_id: str, body: SuspendAgentRequest) -> StatusResponse:
    process_with_retry(SuspendAgent(agent_id=agent_id, reason=body.reason))
    return StatusResponse(status="suspended")


@agent_router.put("/{agent_id}/availability", response_model=StatusResponse)
async def update_availability(agent_id: str, body: AgentAvailabilityRequest) -> StatusResponse:
    command = UpdateAgentAvailability(agent_id=agent_id, availability=body.availability)
    availability = process_with_retry(command)
    return StatusResponse(status=availability)


@agent_router.put("/{agent_id}/location", response_model=StatusResponse)
async def update_location(agent_id: str, body: AgentLocationRequest) -> StatusResponse:
    command = UpdateAgentLocation(agent_id=agent_id, lat=body.lat, lng=body.lng)
    process_with_retry(command)
    return StatusResponse(status="location_updated")


@agent_router.post("/bulk-availability", response_model=BulkAgentResponse)
async def bulk_availability(body: BulkAvailabilityRequest) -> BulkAgentResponse:
    summary = bulk_update_agents(body.agent_ids, body.availability)
    return BulkAgentResponse(**summary)


# ---------------------------------------------------------------------------
# Assignment Router
# ---------------------------------------------------------------------------
assignment_router = APIRouter(prefix="/assignments", tags=["assignments"])


@assignment_router.put("/{order_id}", response_model=AssignmentResponse)
async def assign_order(order_id: str) -> AssignmentResponse:
    """Bind the order to a free agent, or park it until one frees up."""
    agent_id = process_with_retry(AssignOrder(order_id=order_id))
    if agent_id:
        return AssignmentResponse(order_id=order_id, agent_id=agent_id, status="assigned")

    order = current_domain.repository_for(Order).get(order_id)
    if order.assigned_agent_id:
        return AssignmentResponse(order_id=order_id, agent_id=str(order.assigned_agent_id), status="already_assigned")
    return AssignmentResponse(
        order_id=order_id,
        status="pending_agent" if order.pending_agent else "not_assignable",
    )


@assignment_router.put("/{order_id}/reassign", response_model=AssignmentResponse)
async def reassign_order(order_id: str, body: ReassignRequest) -> AssignmentResponse:
    command = ReassignOrder(order_id=order_id, agent_id=body.agent_id, reason=body.reason)
    agent_id = process_with_retry(command)
    return AssignmentResponse(order_id=order_id, agent_id=agent_id, status="reassigned")


@assignment_router.put("/agents/{agent_id}/release", response_model=ReleaseResponse)
async def release_agent(agent_id: str, body: ReleaseAgentRequest | None = None) -> ReleaseResponse:
    command = ReleaseAgent(agent_id=agent_id, order_id=body.order_id if body else None)
    released = process_with_retry(command)
    return ReleaseResponse(agent_id=agent_id, released=bool(released))


@assignment_router.post("/sweep", response_model=SweepResponse)
async def auto_assign_sweep(body: SweepRequest | None = None) -> SweepResponse:
    summary = process_with_retry(RunAutoAssignSweep(as_of=body.as_of if body else None))
    return SweepResponse(**summary)


# ---------------------------------------------------------------------------
# Courier Router
# ---------------------------------------------------------------------------
courier_router = APIRouter(prefix="/courier", tags=["courier"])


@courier_router.post("/webhook", response_model=WebhookResponse)
async def courier_webhook(
    body: CourierWebhookRequest,
    x_courier_signature: str = Header(default=""),
) -> WebhookResponse:
    """Process a courier status callback."""
    courier = get_courier()
    if not courier.verify_webhook_signature(json.dumps(body.model_dump()), x_courier_signature):
        raise HTTPException(status_code=401, detail="Invalid courier webhook signature")

    command = HandleCourierStatus(
        shipment_ref=body.shipment_ref,
        provider_status=body.provider_status,
        tracking_code=body.tracking_code,
    )
    order_status = process_with_retry(command)
    return WebhookResponse(status="applied" if order_status else "ignored", order_status=order_status)
