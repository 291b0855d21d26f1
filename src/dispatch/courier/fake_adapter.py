"""In-memory courier used in development and tests.

Shipment references are sequential so runs are reproducible. A configured
failure raises ``ProviderUnavailable`` just like a real courier outage, which
drives the self-fleet fallback.
"""

import hmac
from itertools import count

from dispatch.courier.port import CourierPort
from dispatch.errors import ProviderUnavailable

TRACKING_BASE = "https://fake-courier.example.com/tracking"


class FakeCourier(CourierPort):
    name = "fake"

    def __init__(self, webhook_secret: str | None = None):
        self.webhook_secret = webhook_secret
        self.should_succeed = True
        self.failure_reason = "Courier unavailable"
        self.shipments: list[dict] = []
        self._awb = count(100001)

    def configure(self, should_succeed: bool = True, failure_reason: str = "Courier unavailable"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_shipment(self, snapshot: dict) -> dict:
        if not self.should_succeed:
            raise ProviderUnavailable(self.failure_reason, provider=self.name)

        awb = f"FAKE{next(self._awb)}"
        shipment = {
            "order_id": snapshot["order_id"],
            "shipment_ref": f"ship-{awb.lower()}",
            "tracking_url": f"{TRACKING_BASE}/{awb}",
        }
        self.shipments.append(shipment)
        return {"shipment_ref": shipment["shipment_ref"], "tracking_url": shipment["tracking_url"]}

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Without a secret every callback is trusted."""
        if self.webhook_secret is None:
            return True
        return hmac.compare_digest(signature or "", self.webhook_secret)
