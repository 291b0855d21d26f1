"""Shiprocket courier adapter over httpx.

Logs in for a bearer token, then creates an ad-hoc order. Every request is
bounded by the client timeout; transport errors, timeouts and non-2xx
responses all surface as ``ProviderUnavailable``.
"""

import hmac
import os

import httpx
import structlog

from dispatch.courier.port import CourierPort
from dispatch.errors import ProviderUnavailable

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://apiv2.shiprocket.in/v1/external"
DEFAULT_TIMEOUT_SECONDS = 10.0
TRACKING_URL = "https://shiprocket.in/tracking/{awb}"

# Parcel defaults for a print job envelope
_PARCEL = {"length": 10, "breadth": 10, "height": 5, "weight": 0.5}


class ShiprocketCourier(CourierPort):
    name = "shiprocket"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        webhook_token: str | None = None,
        pickup_location: str = "Primary",
        client: httpx.Client | None = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.webhook_token = webhook_token
        self.pickup_location = pickup_location
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    @classmethod
    def from_env(cls):
        return cls(
            api_key=os.environ.get("SHIPROCKET_API_KEY", ""),
            api_secret=os.environ.get("SHIPROCKET_API_SECRET", ""),
            base_url=os.environ.get("SHIPROCKET_BASE_URL", DEFAULT_BASE_URL),
            timeout=float(os.environ.get("COURIER_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
            webhook_token=os.environ.get("SHIPROCKET_WEBHOOK_TOKEN"),
        )

    def _post(self, path: str, payload: dict, headers: dict | None = None) -> dict:
        try:
            response = self.client.post(path, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("Shiprocket request timed out", path=path)
            raise ProviderUnavailable(f"Shiprocket timed out on {path}", provider=self.name) from exc
        except httpx.HTTPStatusError as exc:
            logger.warning("Shiprocket rejected request", path=path, status_code=exc.response.status_code)
            raise ProviderUnavailable(
                f"Shiprocket returned {exc.response.status_code} on {path}", provider=self.name
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Shiprocket request failed", path=path, error=str(exc))
            raise ProviderUnavailable(f"Shiprocket request failed: {exc}", provider=self.name) from exc

        if not isinstance(body, dict):
            logger.warning("Shiprocket returned an unexpected body", path=path, body_type=type(body).__name__)
            raise ProviderUnavailable(f"Shiprocket returned an unexpected body on {path}", provider=self.name)
        return body

    def authenticate(self) -> str:
        data = self._post("/auth/login", {"email": self.api_key, "password": self.api_secret})
        token = data.get("token")
        if not token:
            raise ProviderUnavailable("Failed to authenticate with Shiprocket", provider=self.name)
        return token

    def build_payload(self, snapshot: dict) -> dict:
        first_name, _, last_name = (snapshot.get("customer_name") or "").partition(" ")
        return {
            "order_id": snapshot["order_id"],
            "order_date": snapshot.get("order_date"),
            "pickup_location": self.pickup_location,
            "comment": "Urgent Order" if snapshot.get("urgent") else "Standard Order",
            "billing_customer_name": first_name,
            "billing_last_name": last_name,
            "billing_phone": snapshot.get("customer_phone"),
            "shipping_is_billing": True,
            "order_items": [
                {
                    "name": item["name"],
                    "sku": item["name"].strip().replace(" ", "-").lower(),
                    "units": item["quantity"],
                }
                for item in snapshot.get("items", [])
            ],
            "payment_method": "COD" if snapshot.get("payment_method") == "COD" else "Prepaid",
            **_PARCEL,
        }

    def create_shipment(self, snapshot: dict) -> dict:
        token = self.authenticate()
        data = self._post(
            "/orders/create/adhoc",
            self.build_payload(snapshot),
            headers={"Authorization": f"Bearer {token}"},
        )
        shipment_id = data.get("shipment_id")
        if not shipment_id:
            raise ProviderUnavailable(data.get("message") or "Shiprocket did not return a shipment", provider=self.name)

        awb = data.get("awb_code")
        return {
            "shipment_ref": str(shipment_id),
            "tracking_url": TRACKING_URL.format(awb=awb) if awb else None,
        }

    def verify_webhook_signature(self, _payload: str, signature: str) -> bool:
        # Shiprocket echoes the token configured on its dashboard in the header
        if not self.webhook_token:
            logger.warning("Shiprocket webhook token not configured; rejecting callback")
            return False
        return hmac.compare_digest(signature or "", self.webhook_token)
