"""DeliveryOTP aggregate — a one-time code proving in-person handover.

A code is bound to one order and the agent carrying it. It is live while it
is neither used, revoked nor expired; using it is permanent.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String

from dispatch.domain import dispatch
from dispatch.errors import InvalidOTP, OTPFailure
from dispatch.otp.events import DeliveryOtpIssued, DeliveryOtpVerified
from dispatch.utils.clock import as_utc


@dispatch.aggregate
class DeliveryOTP:
    order_id = Identifier(required=True)
    code = String(required=True, max_length=10)
    agent_id = Identifier(required=True)
    customer_phone = String(max_length=20)
    expires_at = DateTime(required=True)
    used = Boolean(default=False)
    used_at = DateTime()
    revoked = Boolean(default=False)
    created_at = DateTime()

    @classmethod
    def issue(cls, order_id: str, agent_id: str, customer_phone: str | None, code: str, issued_at: datetime, expires_at: datetime):
        otp = cls(
            order_id=order_id,
            agent_id=agent_id,
            customer_phone=customer_phone,
            code=code,
            expires_at=expires_at,
            used=False,
            revoked=False,
            created_at=issued_at,
        )
        otp.raise_(
            DeliveryOtpIssued(
                otp_id=str(otp.id),
                order_id=order_id,
                agent_id=agent_id,
                customer_phone=customer_phone,
                code=code,
                expires_at=expires_at,
                issued_at=issued_at,
            )
        )
        return otp

    @property
    def is_open(self) -> bool:
        """Not yet consumed and not superseded."""
        return not self.used and not self.revoked

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) > as_utc(self.expires_at)

    def revoke(self) -> None:
        if self.used:
            raise ValidationError({"used": ["A used code cannot be revoked"]})
        self.revoked = True

    def verify(self, submitted_code: str, now: datetime | None = None) -> None:
        """Check and consume the code; raises InvalidOTP without consuming on failure."""
        now = now or datetime.now(UTC)
        if not self.is_open:
            raise InvalidOTP(OTPFailure.NOT_FOUND)
        if self.is_expired(now):
            raise InvalidOTP(OTPFailure.EXPIRED)
        if str(submitted_code).strip() != self.code:
            raise InvalidOTP(OTPFailure.MISMATCH)

        self.used = True
        self.used_at = now
        self.raise_(
            DeliveryOtpVerified(
                otp_id=str(self.id),
                order_id=str(self.order_id),
                agent_id=self.agent_id,
                verified_at=now,
            )
        )