"""Courier adapter registry.

``COURIER_ADAPTER`` picks the adapter: ``fake`` (default) or ``shiprocket``.
The adapter is built once per process and shared by the lifecycle engine and
the webhook route.
"""

import os

_courier_instance = None


def _build_fake():
    from dispatch.courier.fake_adapter import FakeCourier

    return FakeCourier(webhook_secret=os.environ.get("COURIER_WEBHOOK_SECRET"))


def _build_shiprocket():
    from dispatch.courier.shiprocket import ShiprocketCourier

    return ShiprocketCourier.from_env()


_FACTORIES = {
    "fake": _build_fake,
    "shiprocket": _build_shiprocket,
}


def get_courier():
    global _courier_instance
    if _courier_instance is None:
        adapter = os.environ.get("COURIER_ADAPTER", "fake").lower()
        if adapter not in _FACTORIES:
            raise ValueError(f"Unknown courier adapter: {adapter}")
        _courier_instance = _FACTORIES[adapter]()
    return _courier_instance


def reset_courier():
    """Drop the shared adapter; the next ``get_courier`` builds a fresh one."""
    global _courier_instance
    _courier_instance = None
