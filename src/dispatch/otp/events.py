"""Delivery code events."""

from protean.fields import DateTime, Identifier, String

from dispatch.domain import dispatch


@dispatch.event(part_of="DeliveryOTP")
class DeliveryOtpIssued:
    """A fresh code was issued; the customer must receive it."""

    __version__ = 1

    otp_id = Identifier(required=True)
    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    customer_phone = String()
    code = String(required=True)
    expires_at = DateTime(required=True)
    issued_at = DateTime(required=True)


@dispatch.event(part_of="DeliveryOTP")
class DeliveryOtpVerified:
    __version__ = 1

    otp_id = Identifier(required=True)
    order_id = Identifier(required=True)
    agent_id = Identifier()
    verified_at = DateTime(required=True)
