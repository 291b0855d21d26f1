"""Application tests for writes racing on separate threads.

Each thread pushes its own domain context, so every command runs in its own
unit of work against the shared in-memory store. Threads are released
together from a barrier.

Covers:
- one free agent, many simultaneous AssignOrder commands: exactly one binding
- every caller told "bound to agent X" finds its order persisted with X
- an agent going Offline while being assigned ends in one consistent state
- one delivery code, two simultaneous deliveries: exactly one completes
- process_with_retry: version conflicts are retried, then surfaced
"""

import threading

import pytest
from dispatch.agent.agent import Agent, Availability
from dispatch.agent.availability import UpdateAgentAvailability
from dispatch.assignment.commands import AssignOrder
from dispatch.assignment.scheduler import AssignmentScheduler
from dispatch.domain import dispatch
from dispatch.errors import InvalidOTP
from dispatch.lifecycle.engine import OrderLifecycleEngine
from dispatch.order.order import Order, OrderStatus
from dispatch.order.status import TransitionOrder
from dispatch.otp.service import DeliveryOtpService
from dispatch.utils.writes import MAX_ATTEMPTS, process_with_retry
from protean import UnitOfWork, current_domain
from protean.exceptions import ExpectedVersionError, ValidationError


def _race(fn, calls):
    """Run ``fn(*args)`` for every args tuple on its own thread; returns outcomes in order."""
    start = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def _run(index, args):
        with dispatch.domain_context():
            start.wait()
            try:
                outcomes[index] = ("ok", fn(*args))
            except Exception as exc:
                outcomes[index] = ("error", exc)

    threads = [threading.Thread(target=_run, args=(index, args)) for index, args in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not any(thread.is_alive() for thread in threads)
    return outcomes


def _place_order(customer_id="cust-001"):
    order = Order.place(
        customer_id=customer_id,
        customer_phone="+919800000001",
        items_data=[{"name": "Notes", "pages": 4, "quantity": 1}],
    )
    current_domain.repository_for(Order).add(order)
    return str(order.id)


def _active_agent(first_name="Ravi", phone="+919800000100"):
    agent = Agent.register(first_name=first_name, phone=phone)
    agent.approve()
    current_domain.repository_for(Agent).add(agent)
    return str(agent.id)


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _agent(agent_id):
    return current_domain.repository_for(Agent).get(agent_id)


def _assign(order_id):
    return process_with_retry(AssignOrder(order_id=order_id))


class TestSimultaneousAssignment:
    def test_one_agent_is_bound_to_exactly_one_order(self):
        agent_id = _active_agent()
        order_ids = [_place_order(f"cust-00{n}") for n in range(1, 5)]

        outcomes = _race(_assign, [(order_id,) for order_id in order_ids])

        assert [kind for kind, _ in outcomes] == ["ok"] * len(order_ids)
        results = dict(zip(order_ids, (value for _, value in outcomes)))
        winners = [order_id for order_id, value in results.items() if value == agent_id]
        assert len(winners) == 1
        assert [value for value in results.values() if value != agent_id] == [None] * (len(order_ids) - 1)

        agent = _agent(agent_id)
        assert agent.current_order_id == winners[0]
        assert agent.availability == Availability.BUSY.value
        for order_id in order_ids:
            order = _order(order_id)
            if order_id in winners:
                assert order.assigned_agent_id == agent_id
            else:
                assert order.assigned_agent_id is None
                assert order.pending_agent is True

    def test_every_reported_binding_is_persisted(self):
        agent_ids = {_active_agent("Ravi", "+919800000100"), _active_agent("Meena", "+919800000101")}
        order_ids = [_place_order(f"cust-00{n}") for n in range(1, 7)]

        outcomes = _race(_assign, [(order_id,) for order_id in order_ids])

        assert all(kind == "ok" for kind, _ in outcomes)
        bound = {order_id: value for order_id, (_, value) in zip(order_ids, outcomes) if value}
        assert sorted(bound.values()) == sorted(agent_ids)
        for order_id, agent_id in bound.items():
            assert _order(order_id).assigned_agent_id == agent_id
            assert _agent(agent_id).current_order_id == order_id

        unbound = [order_id for order_id in order_ids if order_id not in bound]
        assert all(_order(order_id).assigned_agent_id is None for order_id in unbound)

    def test_going_offline_while_being_assigned(self):
        agent_id = _active_agent()
        order_id = _place_order()

        outcomes = _race(
            process_with_retry,
            [
                (AssignOrder(order_id=order_id),),
                (UpdateAgentAvailability(agent_id=agent_id, availability="Offline"),),
            ],
        )

        agent = _agent(agent_id)
        order = _order(order_id)
        if order.assigned_agent_id:
            assert outcomes[0] == ("ok", agent_id)
            assert agent.current_order_id == order_id
            assert agent.availability == Availability.BUSY.value
            # An agent holding an order cannot go Offline
            assert outcomes[1][0] == "error"
            assert isinstance(outcomes[1][1], ValidationError)
        else:
            assert outcomes[0] == ("ok", None)
            assert outcomes[1] == ("ok", Availability.OFFLINE.value)
            assert agent.current_order_id is None
            assert agent.availability == Availability.OFFLINE.value
            assert order.pending_agent is True


class TestSimultaneousDelivery:
    def _out_for_delivery(self):
        agent_id = _active_agent()
        order_id = _place_order()
        engine = OrderLifecycleEngine()
        for status in (OrderStatus.PROCESSING, OrderStatus.PRINTED, OrderStatus.OUT_FOR_DELIVERY):
            engine.transition(order_id, status, "admin")
        code = DeliveryOtpService().open_codes(order_id)[0].code
        return order_id, agent_id, code

    def test_code_completes_one_delivery(self):
        order_id, agent_id, code = self._out_for_delivery()

        outcomes = _race(
            process_with_retry,
            [
                (TransitionOrder(order_id=order_id, target_status="Delivered", actor="agent", customer_otp=code),),
                (TransitionOrder(order_id=order_id, target_status="Delivered", actor="agent", customer_otp=code),),
            ],
        )

        assert sorted(kind for kind, _ in outcomes) == ["error", "ok"]
        assert [value for kind, value in outcomes if kind == "ok"] == ["Delivered"]
        error = next(value for kind, value in outcomes if kind == "error")
        assert isinstance(error, ValidationError)

        assert _order(order_id).status == OrderStatus.DELIVERED.value
        assert _agent(agent_id).performance.deliveries_completed == 1
        assert DeliveryOtpService().open_codes(order_id) == []

    def test_validate_accepts_a_code_once(self):
        service = DeliveryOtpService()
        otp = service.issue("ORD000001AAAA", "agent-001", "+919800000001")

        outcomes = _race(lambda: DeliveryOtpService().validate("ORD000001AAAA", otp.code), [(), ()])

        assert sorted(kind for kind, _ in outcomes) == ["error", "ok"]
        error = next(value for kind, value in outcomes if kind == "error")
        assert isinstance(error, InvalidOTP)
        assert service.open_codes("ORD000001AAAA") == []


class TestProcessWithRetry:
    def _conflicting_assign(self, monkeypatch, conflicts):
        real_assign = AssignmentScheduler.assign_single
        calls = []

        def _assign_single(self, order_id):
            calls.append(order_id)
            if len(calls) <= conflicts:
                raise ExpectedVersionError(f"Wrong expected version (Aggregate: Order({order_id}))")
            return real_assign(self, order_id)

        monkeypatch.setattr(AssignmentScheduler, "assign_single", _assign_single)
        return calls

    def test_conflict_is_retried(self, monkeypatch):
        agent_id = _active_agent()
        order_id = _place_order()
        calls = self._conflicting_assign(monkeypatch, conflicts=1)

        assert _assign(order_id) == agent_id
        assert len(calls) == 2
        assert _order(order_id).assigned_agent_id == agent_id

    def test_gives_up_after_max_attempts(self, monkeypatch):
        agent_id = _active_agent()
        order_id = _place_order()
        calls = self._conflicting_assign(monkeypatch, conflicts=MAX_ATTEMPTS)

        with pytest.raises(ExpectedVersionError):
            _assign(order_id)

        assert len(calls) == MAX_ATTEMPTS
        assert _order(order_id).assigned_agent_id is None
        assert _agent(agent_id).current_order_id is None

    def test_stale_aggregate_write_is_refused(self):
        agent_id = _active_agent()
        repo = current_domain.repository_for(Agent)
        fresh, stale = repo.get(agent_id), repo.get(agent_id)

        fresh.update_location(18.52, 73.85)
        repo.add(fresh)
        stale.update_location(12.97, 77.59)

        with pytest.raises(ExpectedVersionError):
            with UnitOfWork():
                repo.add(stale)
        assert _agent(agent_id).location.lat == 18.52
