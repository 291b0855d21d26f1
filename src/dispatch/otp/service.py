"""Delivery code issuing and validation."""

import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog
from protean.utils.globals import current_domain

from dispatch.errors import InvalidOTP, OTPFailure
from dispatch.otp.delivery_otp import DeliveryOTP
from dispatch.utils.writes import exclusive_writes

logger = structlog.get_logger(__name__)

OTP_LENGTH = 6
OTP_TTL = timedelta(minutes=30)


def generate_code(length: int = OTP_LENGTH) -> str:
    return f"{secrets.randbelow(10**length):0{length}d}"


class DeliveryOtpService:
    """Issues codes when an order goes out for delivery and checks them at handover."""

    def __init__(self, clock: Callable[[], datetime] | None = None, ttl: timedelta = OTP_TTL):
        self.clock = clock or (lambda: datetime.now(UTC))
        self.ttl = ttl

    @property
    def repository(self):
        return current_domain.repository_for(DeliveryOTP)

    def open_codes(self, order_id: str) -> list[DeliveryOTP]:
        """Unused, unrevoked codes for the order, newest first."""
        results = self.repository._dao.query.filter(order_id=order_id, used=False, revoked=False).all()
        return sorted(results.items, key=lambda otp: otp.created_at, reverse=True)

    def issue(self, order_id: str, agent_id: str, customer_phone: str | None, now: datetime | None = None) -> DeliveryOTP:
        now = now or self.clock()
        repo = self.repository

        for stale in self.open_codes(order_id):
            stale.revoke()
            repo.add(stale)

        otp = DeliveryOTP.issue(
            order_id=order_id,
            agent_id=agent_id,
            customer_phone=customer_phone,
            code=generate_code(),
            issued_at=now,
            expires_at=now + self.ttl,
        )
        repo.add(otp)
        logger.info("Delivery code issued", order_id=order_id, agent_id=agent_id, expires_at=otp.expires_at.isoformat())
        return otp

    def validate(self, order_id: str, submitted_code: str | None, now: datetime | None = None) -> DeliveryOTP:
        if not submitted_code:
            raise InvalidOTP(OTPFailure.REQUIRED)

        now = now or self.clock()
        # Read, verify and mark used as one step so a code completes one delivery
        with exclusive_writes():
            codes = self.open_codes(order_id)
            if not codes:
                logger.warning("Delivery code rejected", order_id=order_id, reason=OTPFailure.NOT_FOUND.value)
                raise InvalidOTP(OTPFailure.NOT_FOUND)

            otp = codes[0]
            try:
                otp.verify(submitted_code, now=now)
            except InvalidOTP as exc:
                logger.warning("Delivery code rejected", order_id=order_id, reason=exc.reason.value)
                raise

            self.repository.add(otp)
        return otp
