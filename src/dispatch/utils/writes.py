"""Serialised command processing for writes to orders, agents and codes.

The memory provider hands every unit of work a private copy of the whole store
and swaps that copy back in on commit. Two overlapping units of work therefore
never see each other: the later commit silently drops the earlier one's
writes and no ``ExpectedVersionError`` is raised. Binding an agent is a
read-check-write across two aggregates, so it is only safe when no other
write runs between its first read and its commit.

``process_with_retry`` holds one process-wide lock around the whole command,
unit of work included. Version conflicts reported by providers that do detect
them are retried with a fresh read.
"""

import threading
from contextlib import contextmanager

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 3

# Re-entrant so a guarded command may call guarded services on the same thread
_write_lock = threading.RLock()


@contextmanager
def exclusive_writes():
    """Run the block with no other guarded write in flight."""
    with _write_lock:
        yield


def process_with_retry(command, attempts: int = MAX_ATTEMPTS):
    """Process ``command`` synchronously and exclusively, retrying on version conflicts."""
    for attempt in range(1, attempts + 1):
        try:
            with exclusive_writes():
                return current_domain.process(command, asynchronous=False)
        except ExpectedVersionError:
            if attempt == attempts:
                logger.error("Version conflict, giving up", command=command.__class__.__name__, attempts=attempts)
                raise
            logger.warning("Version conflict, retrying", command=command.__class__.__name__, attempt=attempt)
