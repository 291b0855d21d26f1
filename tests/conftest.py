import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path) or "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def _dispatch_domain(request):
    """Initialize the dispatch domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from dispatch.domain import dispatch

    dispatch.init()
    return dispatch


@pytest.fixture(autouse=True)
def run_around_tests(_dispatch_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _dispatch_domain.domain_context()
    ctx.push()

    yield

    from dispatch.courier import reset_courier
    from dispatch.notification import reset_push
    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()

    reset_courier()
    reset_push()
