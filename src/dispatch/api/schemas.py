"""Pydantic API schemas for the Dispatch domain.

These are the external API contracts — separate from domain commands.
Unknown fields are rejected so typos never reach a command.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class OrderItemRequest(_Strict):
    name: str
    pages: int = Field(ge=1)
    quantity: int = Field(default=1, ge=1)
    color_option: Literal["bw", "color"] = "bw"
    binding_option: str = "none"


class PlaceOrderRequest(_Strict):
    customer_id: str
    customer_name: str | None = None
    customer_phone: str | None = None
    items: list[OrderItemRequest] = Field(min_length=1)
    delivery_channel: Literal["self_fleet", "courier"] = "self_fleet"
    payment_method: str | None = None
    payment_status: Literal["pending", "paid", "failed"] = "pending"
    urgent: bool = False


class TransitionOrderRequest(_Strict):
    target_status: str
    actor: str
    note: str | None = None
    reason: str | None = None
    customer_otp: str | None = None
    photo_url: str | None = None
    proof_notes: str | None = None
    rating: float | None = Field(default=None, ge=1, le=5)


class RecordPaymentRequest(_Strict):
    status: Literal["pending", "paid", "failed", "refund_pending", "refunded"]
    method: str | None = None


class BulkStatusRequest(_Strict):
    order_ids: list[str] = Field(min_length=1)
    target_status: str
    actor: str
    note: str | None = None


class FeedbackSweepRequest(_Strict):
    as_of: datetime | None = None


class RegisterAgentRequest(_Strict):
    first_name: str
    last_name: str | None = None
    phone: str
    email: str | None = None
    city: str | None = None


class RejectAgentRequest(_Strict):
    reason: str


class SuspendAgentRequest(_Strict):
    reason: str | None = None


class AgentAvailabilityRequest(_Strict):
    availability: Literal["Available", "Offline"]


class AgentLocationRequest(_Strict):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class BulkAvailabilityRequest(_Strict):
    agent_ids: list[str] = Field(min_length=1)
    availability: Literal["Available", "Offline"]


class ReassignRequest(_Strict):
    agent_id: str
    reason: str | None = None


class ReleaseAgentRequest(_Strict):
    order_id: str | None = None


class SweepRequest(_Strict):
    as_of: datetime | None = None


class CourierWebhookRequest(BaseModel):
    # Providers add fields of their own; only these three matter
    shipment_ref: str
    provider_status: str
    tracking_code: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class AgentIdResponse(BaseModel):
    agent_id: str


class StatusResponse(BaseModel):
    status: str


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str


class AssignmentResponse(BaseModel):
    order_id: str
    agent_id: str | None = None
    status: str


class ReleaseResponse(BaseModel):
    agent_id: str
    released: bool


class BulkOrderResponse(BaseModel):
    updated: list[str]
    skipped: list[str]
    failures: dict[str, str] = {}


class BulkAgentResponse(BaseModel):
    updated: list[str]
    skipped: list[str]


class SweepResponse(BaseModel):
    assigned: dict[str, str]
    pending: list[str]


class FeedbackSweepResponse(BaseModel):
    requested: list[str]


class WebhookResponse(BaseModel):
    status: str
    order_status: str | None = None
