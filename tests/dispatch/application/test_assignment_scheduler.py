"""Application tests for AssignmentScheduler — single assignment, sweeps, release and reassignment.

Covers:
- assign: binds exactly one eligible agent, or parks the order
- bind: re-reads the agent; a stale candidate never double-books
- auto_assign_sweep: age filter, oldest first, batch cap, rotation across agents
- release: idempotent, only for the order the agent holds
- reassign: frees the previous agent, validates the new one
"""

import random
from datetime import timedelta

import pytest
from dispatch.agent.agent import Agent, Availability
from dispatch.assignment.policy import RandomSelection, SelectionPolicy
from dispatch.assignment.scheduler import AUTO_ASSIGN_BATCH_SIZE, AssignmentScheduler
from dispatch.errors import AgentUnavailable
from dispatch.order.order import Order, OrderStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _place_order(channel="self_fleet", created_at=None, customer_id="cust-001"):
    order = Order.place(
        customer_id=customer_id,
        customer_phone="+919800000001",
        items_data=[{"name": "Notes", "pages": 4, "quantity": 1}],
        delivery_channel=channel,
        now=created_at,
    )
    current_domain.repository_for(Order).add(order)
    return order


def _active_agent(first_name, phone, registered_at=None):
    agent = Agent.register(first_name=first_name, phone=phone, now=registered_at)
    agent.approve()
    current_domain.repository_for(Agent).add(agent)
    return agent


def _pending_agent(first_name, phone):
    agent = Agent.register(first_name=first_name, phone=phone)
    current_domain.repository_for(Agent).add(agent)
    return agent


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _agent(agent_id):
    return current_domain.repository_for(Agent).get(agent_id)


def _scheduler(clock=None, policy=None):
    return AssignmentScheduler(policy=policy or RandomSelection(random.Random(3)), clock=clock)


class TestAssignSingle:
    def test_binds_exactly_one_of_three_agents(self):
        agents = [_active_agent(f"Agent{i}", f"+91980000010{i}") for i in range(3)]
        order = _place_order()

        agent_id = _scheduler().assign_single(str(order.id))

        reloaded = [_agent(str(a.id)) for a in agents]
        busy = [a for a in reloaded if a.availability == Availability.BUSY.value]
        assert len(busy) == 1
        assert str(busy[0].id) == agent_id
        assert busy[0].current_order_id == str(order.id)
        assert _order(str(order.id)).assigned_agent_id == agent_id

    def test_timeline_records_assignment(self):
        _active_agent("Ravi", "+919800000100")
        order = _place_order()

        _scheduler().assign_single(str(order.id))

        assert _order(str(order.id)).sorted_timeline()[-1].action == "Agent assigned"

    def test_no_free_agent_parks_order(self):
        order = _place_order()

        assert _scheduler().assign_single(str(order.id)) is None

        reloaded = _order(str(order.id))
        assert reloaded.pending_agent is True
        assert reloaded.assigned_agent_id is None
        assert reloaded.sorted_timeline()[-1].action == "Awaiting delivery agent"

    def test_only_eligible_agents_are_considered(self):
        _pending_agent("Pending", "+919800000101")
        offline = _active_agent("Offline", "+919800000102")
        offline.set_availability(Availability.OFFLINE.value)
        current_domain.repository_for(Agent).add(offline)
        ready = _active_agent("Ready", "+919800000103")
        order = _place_order()

        assert _scheduler().assign_single(str(order.id)) == str(ready.id)

    def test_courier_order_is_not_assignable(self):
        _active_agent("Ravi", "+919800000100")
        order = _place_order(channel="courier")

        assert _scheduler().assign_single(str(order.id)) is None
        assert _order(str(order.id)).pending_agent is False

    def test_terminal_order_is_not_assignable(self):
        _active_agent("Ravi", "+919800000100")
        order = _place_order()
        order.transition(OrderStatus.CANCELLED, "admin")
        current_domain.repository_for(Order).add(order)

        assert _scheduler().assign_single(str(order.id)) is None

    def test_assigned_order_keeps_its_agent(self):
        first = _active_agent("Ravi", "+919800000100")
        second = _active_agent("Meena", "+919800000101")
        order = _place_order()
        scheduler = _scheduler()
        bound = scheduler.assign_single(str(order.id))

        assert scheduler.assign_single(str(order.id)) is None
        assert _order(str(order.id)).assigned_agent_id == bound
        other = second if bound == str(first.id) else first
        assert _agent(str(other.id)).availability == Availability.AVAILABLE.value

    def test_orders_assigned_counter(self):
        agent = _active_agent("Ravi", "+919800000100")
        order = _place_order()

        _scheduler().assign_single(str(order.id))

        assert _agent(str(agent.id)).performance.orders_assigned == 1


class _InterleavingPolicy(SelectionPolicy):
    """Lets a rival assignment take the agent between selection and binding."""

    def __init__(self, rival_order_id):
        self.rival_order_id = rival_order_id
        self.interleaved = False

    def choose(self, order, candidates):
        if not self.interleaved:
            self.interleaved = True
            AssignmentScheduler(policy=RandomSelection()).assign_single(self.rival_order_id)
        return candidates[0]


class TestConcurrentAssignment:
    def test_one_agent_two_orders_exactly_one_wins(self):
        agent = _active_agent("Ravi", "+919800000100")
        first = _place_order(customer_id="cust-001")
        rival = _place_order(customer_id="cust-002")

        result = _scheduler(policy=_InterleavingPolicy(str(rival.id))).assign_single(str(first.id))

        assert result is None
        reloaded_agent = _agent(str(agent.id))
        assert reloaded_agent.current_order_id == str(rival.id)
        assert _order(str(rival.id)).assigned_agent_id == str(agent.id)
        assert _order(str(first.id)).assigned_agent_id is None
        assert _order(str(first.id)).pending_agent is True

    def test_stale_candidate_is_not_bound(self):
        agent = _active_agent("Ravi", "+919800000100")
        first = _place_order(customer_id="cust-001")
        second = _place_order(customer_id="cust-002")
        scheduler = _scheduler()

        assert scheduler.bind(first, str(agent.id)) is True
        assert scheduler.bind(second, str(agent.id)) is False

        assert _agent(str(agent.id)).current_order_id == str(first.id)
        assert _order(str(second.id)).assigned_agent_id is None

    def test_stale_candidate_falls_through_to_next(self):
        taken = _active_agent("Ravi", "+919800000100")
        spare = _active_agent("Meena", "+919800000101")
        first = _place_order(customer_id="cust-001")
        rival = _place_order(customer_id="cust-002")

        class _TakeFirstThenPick(SelectionPolicy):
            def __init__(self):
                self.calls = 0

            def choose(self, order, candidates):
                self.calls += 1
                if self.calls == 1:
                    AssignmentScheduler().bind(rival, str(taken.id))
                    return next(c for c in candidates if str(c.id) == str(taken.id))
                return candidates[0]

        result = _scheduler(policy=_TakeFirstThenPick()).assign_single(str(first.id))

        assert result == str(spare.id)
        assert _agent(str(taken.id)).current_order_id == str(rival.id)
        assert _agent(str(spare.id)).current_order_id == str(first.id)


class TestAutoAssignSweep:
    def test_assigns_orders_older_than_ten_minutes(self, clock):
        _active_agent("Ravi", "+919800000100")
        _active_agent("Meena", "+919800000101")
        old = _place_order(created_at=clock() - timedelta(minutes=20))
        fresh = _place_order(created_at=clock() - timedelta(minutes=5))

        summary = _scheduler(clock).auto_assign_sweep()

        assert list(summary["assigned"]) == [str(old.id)]
        assert summary["pending"] == []
        assert _order(str(fresh.id)).assigned_agent_id is None

    def test_rotation_gives_each_agent_one_order(self, clock):
        agents = [_active_agent(f"Agent{i}", f"+91980000010{i}", clock() - timedelta(days=1, minutes=i)) for i in range(3)]
        orders = [_place_order(created_at=clock() - timedelta(minutes=30 - i)) for i in range(3)]

        summary = _scheduler(clock).auto_assign_sweep()

        assert set(summary["assigned"]) == {str(o.id) for o in orders}
        assert set(summary["assigned"].values()) == {str(a.id) for a in agents}

    def test_more_orders_than_agents(self, clock):
        _active_agent("Ravi", "+919800000100")
        _active_agent("Meena", "+919800000101")
        orders = [_place_order(created_at=clock() - timedelta(minutes=40 - i)) for i in range(3)]

        summary = _scheduler(clock).auto_assign_sweep()

        assert set(summary["assigned"]) == {str(orders[0].id), str(orders[1].id)}
        assert len(set(summary["assigned"].values())) == 2
        assert summary["pending"] == [str(orders[2].id)]
        assert _order(str(orders[2].id)).pending_agent is True

    def test_oldest_order_first(self, clock):
        _active_agent("Ravi", "+919800000100")
        newer = _place_order(created_at=clock() - timedelta(minutes=15))
        older = _place_order(created_at=clock() - timedelta(hours=2))

        summary = _scheduler(clock).auto_assign_sweep()

        assert list(summary["assigned"]) == [str(older.id)]
        assert summary["pending"] == [str(newer.id)]

    def test_batch_is_capped(self, clock):
        for i in range(AUTO_ASSIGN_BATCH_SIZE + 2):
            _active_agent(f"Agent{i}", f"+9198000002{i:02d}")
            _place_order(created_at=clock() - timedelta(minutes=60 + i))

        summary = _scheduler(clock).auto_assign_sweep()

        assert len(summary["assigned"]) == AUTO_ASSIGN_BATCH_SIZE

    def test_skips_courier_and_assigned_orders(self, clock):
        _active_agent("Ravi", "+919800000100")
        spare = _active_agent("Meena", "+919800000101")
        courier_order = _place_order(channel="courier", created_at=clock() - timedelta(minutes=30))
        assigned = _place_order(created_at=clock() - timedelta(minutes=30))
        _scheduler(clock).bind(assigned, str(spare.id))

        summary = _scheduler(clock).auto_assign_sweep()

        assert summary == {"assigned": {}, "pending": []}
        assert _order(str(courier_order.id)).assigned_agent_id is None

    def test_parked_printed_order_is_swept(self, clock):
        order = Order.place(
            customer_id="cust-001",
            items_data=[{"name": "Notes", "pages": 4, "quantity": 1}],
            now=clock() - timedelta(minutes=30),
        )
        order.transition(OrderStatus.PROCESSING, "admin")
        order.transition(OrderStatus.PRINTED, "admin")
        order.park_awaiting_agent()
        current_domain.repository_for(Order).add(order)
        agent = _active_agent("Ravi", "+919800000100")

        summary = _scheduler(clock).auto_assign_sweep()

        assert summary["assigned"] == {str(order.id): str(agent.id)}
        assert _order(str(order.id)).pending_agent is False

    def test_explicit_sweep_time(self, clock):
        _active_agent("Ravi", "+919800000100")
        order = _place_order(created_at=clock())

        assert _scheduler(clock).auto_assign_sweep()["assigned"] == {}
        summary = _scheduler(clock).auto_assign_sweep(now=clock() + timedelta(minutes=11))
        assert list(summary["assigned"]) == [str(order.id)]


class TestRelease:
    def test_release_frees_agent(self):
        agent = _active_agent("Ravi", "+919800000100")
        order = _place_order()
        scheduler = _scheduler()
        scheduler.assign_single(str(order.id))

        assert scheduler.release(str(agent.id), order_id=str(order.id)) is True
        reloaded = _agent(str(agent.id))
        assert reloaded.availability == Availability.AVAILABLE.value
        assert reloaded.current_order_id is None

    def test_release_twice_is_a_noop(self):
        agent = _active_agent("Ravi", "+919800000100")
        order = _place_order()
        scheduler = _scheduler()
        scheduler.assign_single(str(order.id))
        scheduler.release(str(agent.id))

        assert scheduler.release(str(agent.id)) is False
        assert _agent(str(agent.id)).availability == Availability.AVAILABLE.value

    def test_release_for_another_order_is_ignored(self):
        agent = _active_agent("Ravi", "+919800000100")
        order = _place_order()
        scheduler = _scheduler()
        scheduler.assign_single(str(order.id))

        assert scheduler.release(str(agent.id), order_id="ORD999999ZZZZ") is False
        assert _agent(str(agent.id)).current_order_id == str(order.id)

    def test_release_unknown_agent(self):
        assert _scheduler().release("missing-agent") is False
        assert _scheduler().release(None) is False


class TestReassign:
    def test_moves_order_to_new_agent(self):
        first = _active_agent("Ravi", "+919800000100")
        order = _place_order()
        scheduler = _scheduler()
        scheduler.bind(order, str(first.id))
        second = _active_agent("Meena", "+919800000101")

        scheduler.reassign(str(order.id), str(second.id), reason="Vehicle breakdown")

        reloaded = _order(str(order.id))
        assert reloaded.assigned_agent_id == str(second.id)
        assert reloaded.reassigned is True
        assert reloaded.reassignment_reason == "Vehicle breakdown"
        assert _agent(str(first.id)).availability == Availability.AVAILABLE.value
        assert _agent(str(second.id)).current_order_id == str(order.id)

    def test_unassigned_order_can_be_assigned_manually(self):
        order = _place_order()
        agent = _active_agent("Meena", "+919800000101")

        _scheduler().reassign(str(order.id), str(agent.id))

        assert _order(str(order.id)).assigned_agent_id == str(agent.id)

    def test_same_agent_is_rejected(self):
        agent = _active_agent("Ravi", "+919800000100")
        order = _place_order()
        scheduler = _scheduler()
        scheduler.bind(order, str(agent.id))

        with pytest.raises(AgentUnavailable):
            scheduler.reassign(str(order.id), str(agent.id))

    def test_busy_agent_is_rejected(self):
        busy = _active_agent("Ravi", "+919800000100")
        other_order = _place_order(customer_id="cust-002")
        scheduler = _scheduler()
        scheduler.bind(other_order, str(busy.id))
        order = _place_order()

        with pytest.raises(AgentUnavailable):
            scheduler.reassign(str(order.id), str(busy.id))
        assert _order(str(order.id)).assigned_agent_id is None

    def test_unknown_agent(self):
        order = _place_order()
        with pytest.raises(ObjectNotFoundError):
            _scheduler().reassign(str(order.id), "missing-agent")

    def test_courier_order_cannot_be_reassigned(self):
        agent = _active_agent("Ravi", "+919800000100")
        order = _place_order(channel="courier")
        with pytest.raises(ValidationError):
            _scheduler().reassign(str(order.id), str(agent.id))

    def test_terminal_order_cannot_be_reassigned(self):
        agent = _active_agent("Ravi", "+919800000100")
        order = _place_order()
        order.transition(OrderStatus.CANCELLED, "admin")
        current_domain.repository_for(Order).add(order)
        with pytest.raises(ValidationError):
            _scheduler().reassign(str(order.id), str(agent.id))
