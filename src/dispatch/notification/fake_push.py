"""In-memory push adapter used in development and tests."""

from itertools import count

from dispatch.notification.push_port import PushPort

DEFAULT_FAILURE = "Push delivery failed"


class FakePushAdapter(PushPort):
    """Keeps every push in memory.

    It can be told to fail for everyone, or only for chosen recipients, to
    exercise the best-effort paths.
    """

    def __init__(self):
        self.sent_pushes: list[dict] = []
        self.failed_pushes: list[dict] = []
        self.should_succeed = True
        self.failure_reason = DEFAULT_FAILURE
        self.unreachable: set[str] = set()
        self._sequence = count(1)

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = DEFAULT_FAILURE,
        unreachable: tuple[str, ...] = (),
    ):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unreachable = set(unreachable)

    def send(self, recipient: str, title: str, body: str, data: dict | None = None) -> dict:
        message = {"recipient": recipient, "title": title, "body": body, "data": dict(data or {})}
        if not self.should_succeed or recipient in self.unreachable:
            self.failed_pushes.append(message)
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message["message_id"] = f"push-{next(self._sequence):06d}"
        self.sent_pushes.append(message)
        return {"message_id": message["message_id"], "status": "sent"}

    def sent_to(self, recipient: str) -> list[dict]:
        return [push for push in self.sent_pushes if push["recipient"] == recipient]
