"""Assignment commands and handlers.

The API and the CLI process them through
``dispatch.utils.writes.process_with_retry``, so a binding reads the agent
and commits with no other write in between.
"""

from protean import handle
from protean.fields import DateTime, Identifier, String

from dispatch.agent.agent import Agent
from dispatch.assignment.scheduler import AssignmentScheduler
from dispatch.domain import dispatch
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class AssignOrder:
    """Bind a self-fleet order to a free agent, or park it."""

    order_id = Identifier(required=True)


@dispatch.command(part_of="Order")
class ReassignOrder:
    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    reason = String(max_length=500)


@dispatch.command(part_of="Order")
class RunAutoAssignSweep:
    as_of = DateTime()


@dispatch.command(part_of="Agent")
class ReleaseAgent:
    agent_id = Identifier(required=True)
    order_id = Identifier()


@dispatch.command_handler(part_of=Order)
class AssignmentHandler:
    @handle(AssignOrder)
    def assign(self, command):
        return AssignmentScheduler().assign_single(command.order_id)

    @handle(ReassignOrder)
    def reassign(self, command):
        order = AssignmentScheduler().reassign(command.order_id, command.agent_id, reason=command.reason)
        return str(order.assigned_agent_id)

    @handle(RunAutoAssignSweep)
    def sweep(self, command):
        return AssignmentScheduler().auto_assign_sweep(now=command.as_of)


@dispatch.command_handler(part_of=Agent)
class ReleaseHandler:
    @handle(ReleaseAgent)
    def release(self, command):
        return AssignmentScheduler().release(command.agent_id, order_id=command.order_id)

