"""SendDueFeedbackRequests command + handler — post-delivery follow-up.

Delivered orders carry ``feedback_due_at``. A cron job or the manage CLI
issues this command; every due order is stamped and raises
``FeedbackRequested`` exactly once, so the follow-up survives restarts.
"""

from protean import handle
from protean.fields import DateTime

from dispatch.domain import dispatch
from dispatch.lifecycle.engine import OrderLifecycleEngine
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class SendDueFeedbackRequests:
    as_of = DateTime()  # Optional: process as of this time (defaults to now)


@dispatch.command_handler(part_of=Order)
class FeedbackHandler:
    @handle(SendDueFeedbackRequests)
    def send_due(self, command):
        return OrderLifecycleEngine().send_due_feedback_requests(as_of=command.as_of)
