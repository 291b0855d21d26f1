"""Bulk status update.

Each order goes through its own ``TransitionOrder`` command, so each gets its
own unit of work: a failure on one order (missing order, illegal edge, missing
delivery code, a conflict that outlives the retries) rolls back only that
order and is reported in the summary.
"""

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError

from dispatch.order.order import OrderStatus
from dispatch.order.status import TransitionOrder
from dispatch.utils.writes import process_with_retry

logger = structlog.get_logger(__name__)


def bulk_update_orders(order_ids: list[str], target_status: str, actor: str, note: str | None = None) -> dict:
    """Transition many orders; returns ``{"updated", "skipped", "failures"}``."""
    if target_status not in {status.value for status in OrderStatus}:
        raise ValidationError({"target_status": [f"Unknown order status: {target_status}"]})

    updated: list[str] = []
    skipped: list[str] = []
    failures: dict[str, str] = {}
    for order_id in order_ids:
        command = TransitionOrder(order_id=order_id, target_status=target_status, actor=actor, note=note)
        try:
            process_with_retry(command)
        except ObjectNotFoundError:
            skipped.append(order_id)
            failures[order_id] = "Order not found"
        except ExpectedVersionError:
            skipped.append(order_id)
            failures[order_id] = "Order changed concurrently"
        except ValidationError as exc:
            skipped.append(order_id)
            failures[order_id] = _first_message(exc)
        else:
            updated.append(order_id)

    logger.info("Bulk transition finished", target=target_status, updated=len(updated), skipped=len(skipped))
    return {"updated": updated, "skipped": skipped, "failures": failures}


def _first_message(exc: ValidationError) -> str:
    messages = getattr(exc, "messages", None) or {}
    for values in messages.values():
        if values:
            return str(values[0])
    return str(exc)
