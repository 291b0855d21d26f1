"""Dispatch error kinds.

Transition, OTP and agent-availability failures are validation failures from
the caller's point of view: they subclass Protean's ``ValidationError`` so the
FastAPI integration maps them to HTTP 400 without extra wiring. Courier
failures never leave the lifecycle engine; they trigger the self-fleet
fallback instead.
"""

from enum import Enum

from protean.exceptions import ValidationError


class InvalidTransition(ValidationError):
    """Raised when an order status change is not an edge of the status graph."""

    def __init__(self, current_status: str, target_status: str, reason: str | None = None):
        self.current_status = current_status
        self.target_status = target_status
        message = reason or f"Cannot transition from {current_status} to {target_status}"
        super().__init__({"status": [message]})


class OTPFailure(Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    REQUIRED = "required"


_OTP_MESSAGES = {
    OTPFailure.NOT_FOUND: "No active delivery code exists for this order",
    OTPFailure.EXPIRED: "Delivery code has expired",
    OTPFailure.MISMATCH: "Delivery code does not match",
    OTPFailure.REQUIRED: "Delivery code is required to complete a self-fleet delivery",
}


class InvalidOTP(ValidationError):
    """Raised when a delivery code cannot be accepted."""

    def __init__(self, reason: OTPFailure):
        self.reason = reason
        super().__init__({"customer_otp": [_OTP_MESSAGES[reason]], "reason": [reason.value]})


class AgentUnavailable(ValidationError):
    """Raised when an explicitly chosen agent cannot take an order."""

    def __init__(self, agent_id: str, reason: str = "Agent is not available"):
        self.agent_id = agent_id
        super().__init__({"agent_id": [reason]})


class ProviderUnavailable(Exception):
    """Raised by courier adapters when a shipment cannot be created."""

    def __init__(self, message: str, provider: str = "courier"):
        self.provider = provider
        super().__init__(message)
