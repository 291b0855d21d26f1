"""Push channel registry for customer and agent notifications.

Only the in-memory adapter ships with the project; ``PUSH_ADAPTER`` exists so
a provider adapter can be plugged in without touching the handlers.
"""

import os

_push_instance = None


def get_push():
    global _push_instance
    if _push_instance is None:
        adapter = os.environ.get("PUSH_ADAPTER", "fake").lower()
        if adapter != "fake":
            raise ValueError(f"Unknown push adapter: {adapter}")

        from dispatch.notification.fake_push import FakePushAdapter

        _push_instance = FakePushAdapter()
    return _push_instance


def reset_push():
    global _push_instance
    _push_instance = None
