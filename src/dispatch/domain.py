"""Dispatch bounded context — print order fulfilment and last-mile delivery.

Owns the order status state machine, delivery-channel selection (self-fleet
agents or a third-party courier), agent availability and assignment, and
delivery proof through one-time codes. Uses CQRS: orders, agents and delivery
codes are plain aggregates persisted through Protean repositories, and every
side effect (push messages, read models) hangs off domain events.
"""

from protean.domain import Domain

from dispatch.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

dispatch = Domain(name="dispatch")
