from datetime import UTC, datetime, timedelta

import pytest


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=UTC))


@pytest.fixture()
def courier():
    from dispatch.courier import get_courier

    return get_courier()


@pytest.fixture()
def push():
    from dispatch.notification import get_push

    return get_push()
