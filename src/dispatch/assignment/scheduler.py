"""Assignment scheduler — binds self-fleet orders to delivery agents.

Every binding writes the order and the agent together. Callers run the
scheduler inside a unit of work (the command handlers do), so both writes
commit or neither does.

Binding never trusts the candidate list it selected from: the agent is read
again right before it is taken, and an agent that stopped being free in the
meantime is skipped in favour of the next candidate. That re-read only holds
until commit when no other write interleaves, which is what
``dispatch.utils.writes.process_with_retry`` guarantees for the API and CLI.
"""

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from dispatch.agent.agent import Agent
from dispatch.agent.directory import AgentDirectory
from dispatch.assignment.policy import RandomSelection, RoundRobinRotation, SelectionPolicy
from dispatch.errors import AgentUnavailable
from dispatch.order.order import DeliveryChannel, Order, OrderStatus
from dispatch.utils.clock import as_utc, utc_now

logger = structlog.get_logger(__name__)

MAX_BIND_ATTEMPTS = 3
AUTO_ASSIGN_MIN_AGE = timedelta(minutes=10)
AUTO_ASSIGN_BATCH_SIZE = 10

_SWEEPABLE_STATUSES = [
    OrderStatus.PENDING.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.PRINTED.value,
]


class AssignmentScheduler:
    def __init__(
        self,
        policy: SelectionPolicy | None = None,
        directory: AgentDirectory | None = None,
        clock: Callable[[], datetime] | None = None,
        max_attempts: int = MAX_BIND_ATTEMPTS,
    ):
        self.policy = policy or RandomSelection()
        self.directory = directory or AgentDirectory()
        self.clock = clock or utc_now
        self.max_attempts = max_attempts

    @property
    def orders(self):
        return current_domain.repository_for(Order)

    @property
    def agents(self):
        return current_domain.repository_for(Agent)

    # -------------------------------------------------------------------
    # Single assignment
    # -------------------------------------------------------------------
    def assign_single(self, order_id: str) -> str | None:
        order = self.orders.get(order_id)
        return self.assign(order)

    def assign(self, order: Order, now: datetime | None = None) -> str | None:
        """Bind ``order`` to a randomly chosen free agent, or park it.

        Returns the bound agent id, or None when the order was parked or is
        not assignable.
        """
        if not order.is_self_fleet or order.is_terminal:
            logger.info("Order not assignable", order_id=str(order.id), channel=order.delivery_channel, status=order.status)
            return None
        if order.assigned_agent_id:
            logger.info("Order already assigned", order_id=str(order.id), agent_id=str(order.assigned_agent_id))
            return None

        now = now or self.clock()
        candidates = self.directory.eligible_agents()
        attempts = 0
        while candidates and attempts < self.max_attempts:
            agent = self.policy.choose(order, candidates)
            attempts += 1
            if self.bind(order, str(agent.id), now=now):
                return str(agent.id)
            candidates = [c for c in candidates if str(c.id) != str(agent.id)]

        self.park(order, now)
        return None

    def bind(
        self,
        order: Order,
        agent_id: str,
        now: datetime | None = None,
        reason: str | None = None,
        reassignment: bool = False,
    ) -> bool:
        """Take ``agent_id`` for ``order`` if the agent is still free.

        The agent is re-read here; a stale candidate returns False and
        leaves the order untouched.
        """
        now = now or self.clock()
        agent = self.directory.find(agent_id)
        if agent is None:
            return False
        if not agent.is_eligible:
            logger.info(
                "Agent no longer available",
                agent_id=agent_id,
                order_id=str(order.id),
                availability=agent.availability,
            )
            return False

        agent.take_order(str(order.id), now=now)
        self.agents.add(agent)

        order.assign_agent(agent_id, agent_name=agent.full_name, reason=reason, reassignment=reassignment, now=now)
        self.orders.add(order)
        logger.info("Agent assigned", order_id=str(order.id), agent_id=agent_id, reassignment=reassignment)
        return True

    def park(self, order: Order, now: datetime | None = None) -> None:
        if order.park_awaiting_agent(now or self.clock()):
            self.orders.add(order)
            logger.info("No delivery agent available", order_id=str(order.id), status=order.status)

    # -------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------
    def sweep_candidates(self, now: datetime) -> list[Order]:
        """Unassigned self-fleet orders older than the minimum age, oldest first."""
        cutoff = as_utc(now) - AUTO_ASSIGN_MIN_AGE
        results = self.orders._dao.query.filter(
            delivery_channel=DeliveryChannel.SELF_FLEET.value,
            status__in=_SWEEPABLE_STATUSES,
        ).all()

        due = []
        for order in results.items:
            if order.assigned_agent_id:
                continue
            if order.status == OrderStatus.PRINTED.value and not order.pending_agent:
                continue
            if as_utc(order.created_at) >= cutoff:
                continue
            due.append(order)

        due.sort(key=lambda o: as_utc(o.created_at))
        return due[:AUTO_ASSIGN_BATCH_SIZE]

    def auto_assign_sweep(self, now: datetime | None = None) -> dict:
        """Assign waiting orders to free agents in rotation.

        Within one sweep no agent gets a second order while another eligible
        agent has none. Returns ``{"assigned": {order_id: agent_id}, "pending": [order_id]}``.
        """
        now = now or self.clock()
        batch = self.sweep_candidates(now)
        rotation = RoundRobinRotation(self.directory.eligible_agents())
        assigned: dict[str, str] = {}
        pending: list[str] = []

        for order in batch:
            agent_id = None
            attempts = 0
            while rotation and attempts < self.max_attempts:
                agent = rotation.next()
                attempts += 1
                bound = self.bind(order, str(agent.id), now=now)
                # A bound agent is Busy, a failed one is stale; neither takes another order this sweep
                rotation.discard(agent)
                if bound:
                    agent_id = str(agent.id)
                    break

            if agent_id:
                assigned[str(order.id)] = agent_id
            else:
                self.park(order, now)
                pending.append(str(order.id))

        logger.info("Auto-assign sweep finished", considered=len(batch), assigned=len(assigned), pending=len(pending))
        return {"assigned": assigned, "pending": pending}

    # -------------------------------------------------------------------
    # Release and reassignment
    # -------------------------------------------------------------------
    def release(self, agent_id: str | None, order_id: str | None = None, now: datetime | None = None) -> bool:
        """Free the agent; safe to call any number of times."""
        agent = self.directory.find(agent_id)
        if agent is None:
            logger.info("Release skipped, agent not found", agent_id=agent_id, order_id=order_id)
            return False

        if not agent.release(order_id=order_id, now=now or self.clock()):
            logger.debug("Agent already released", agent_id=agent_id, order_id=order_id)
            return False

        self.agents.add(agent)
        logger.info("Agent released", agent_id=agent_id, order_id=order_id)
        return True

    def reassign(self, order_id: str, new_agent_id: str, reason: str | None = None) -> Order:
        order = self.orders.get(order_id)
        if not order.is_self_fleet:
            raise ValidationError({"delivery_channel": ["Only self-fleet orders can be reassigned"]})
        if order.is_terminal:
            raise ValidationError({"status": [f"Cannot reassign a {order.status} order"]})
        if str(order.assigned_agent_id or "") == str(new_agent_id):
            raise AgentUnavailable(new_agent_id, "Agent already holds this order")

        new_agent = self.directory.get(new_agent_id)
        if not new_agent.is_eligible:
            raise AgentUnavailable(new_agent_id, f"Agent is {new_agent.account_status}/{new_agent.availability}")

        now = self.clock()
        if order.assigned_agent_id:
            self.release(str(order.assigned_agent_id), order_id=str(order.id), now=now)

        if not self.bind(order, new_agent_id, now=now, reason=reason, reassignment=True):
            raise AgentUnavailable(new_agent_id)
        return order
