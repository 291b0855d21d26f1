"""Push channel port for customer and agent notifications."""

from abc import ABC, abstractmethod


class PushPort(ABC):
    """Delivers one rendered message to a customer id, an agent id or a phone number.

    Adapters report delivery problems in the returned receipt instead of
    raising, so a lost push never rolls back an order change.
    """

    @abstractmethod
    def send(self, recipient: str, title: str, body: str, data: dict | None = None) -> dict:
        """Returns ``{"message_id": str | None, "status": "sent" | "failed", "error": str}``."""
