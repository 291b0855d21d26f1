"""Agent aggregate — a self-fleet delivery agent.

Two orthogonal fields describe an agent. ``account_status`` says whether the
agent may work at all (onboarding and moderation), ``availability`` says
whether the agent is free right now. Only Active agents can be Available or
Busy, and an agent is Busy exactly when it holds an order.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, ValueObject

from dispatch.agent.events import (
    AgentApproved,
    AgentAvailabilityChanged,
    AgentDeliveryRecorded,
    AgentLocationUpdated,
    AgentRegistered,
    AgentRejected,
    AgentSuspended,
)
from dispatch.domain import dispatch


class AccountStatus(Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    DELETED = "Deleted"


class Availability(Enum):
    AVAILABLE = "Available"
    BUSY = "Busy"
    OFFLINE = "Offline"


@dispatch.value_object(part_of="Agent")
class Performance:
    """Running delivery counters."""

    orders_assigned = Integer(default=0)
    deliveries_completed = Integer(default=0)
    average_rating = Float(default=0.0)
    total_earnings = Float(default=0.0)


@dispatch.value_object(part_of="Agent")
class Location:
    lat = Float(min_value=-90.0, max_value=90.0)
    lng = Float(min_value=-180.0, max_value=180.0)
    last_updated = DateTime()


def rolling_average(current_average: float, count: int, new_rating: float) -> float:
    """Fold ``new_rating`` into an average that already covers ``count - 1`` deliveries."""
    if count <= 0:
        return round(float(new_rating), 2)
    return round(((current_average or 0.0) * (count - 1) + new_rating) / count, 2)


@dispatch.aggregate
class Agent:
    first_name = String(required=True, max_length=100)
    last_name = String(max_length=100)
    phone = String(required=True, max_length=20)
    email = String(max_length=255)
    city = String(max_length=100)
    account_status = String(choices=AccountStatus, default=AccountStatus.PENDING.value)
    rejection_reason = String(max_length=500)
    availability = String(choices=Availability, default=Availability.OFFLINE.value)
    current_order_id = Identifier()
    performance = ValueObject(Performance)
    location = ValueObject(Location)
    assigned_at = DateTime()
    last_delivery_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def busy_if_and_only_if_holding_an_order(self):
        busy = self.availability == Availability.BUSY.value
        if busy != bool(self.current_order_id):
            raise ValidationError({"availability": ["An agent is Busy exactly when it holds an order"]})

    @invariant.post
    def only_active_agents_can_work(self):
        if self.account_status != AccountStatus.ACTIVE.value and self.availability != Availability.OFFLINE.value:
            raise ValidationError({"availability": [f"A {self.account_status} agent must stay Offline"]})

    # -------------------------------------------------------------------
    # Onboarding
    # -------------------------------------------------------------------
    @classmethod
    def register(
        cls,
        first_name: str,
        phone: str,
        last_name: str | None = None,
        email: str | None = None,
        city: str | None = None,
        now: datetime | None = None,
    ):
        now = now or datetime.now(UTC)
        agent = cls(
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            email=email,
            city=city,
            account_status=AccountStatus.PENDING.value,
            availability=Availability.OFFLINE.value,
            performance=Performance(),
            created_at=now,
            updated_at=now,
        )
        agent.raise_(
            AgentRegistered(
                agent_id=str(agent.id),
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                city=city,
                registered_at=now,
            )
        )
        return agent

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def approved(self) -> bool:
        return self.account_status == AccountStatus.ACTIVE.value

    @property
    def is_eligible(self) -> bool:
        """Free to take an order right now."""
        return self.approved and self.availability == Availability.AVAILABLE.value

    def approve(self, now: datetime | None = None) -> None:
        if self.account_status not in (AccountStatus.PENDING.value, AccountStatus.SUSPENDED.value):
            raise ValidationError({"account_status": [f"Cannot approve a {self.account_status} agent"]})
        now = now or datetime.now(UTC)
        with atomic_change(self):
            self.account_status = AccountStatus.ACTIVE.value
            self.rejection_reason = None
            self.availability = Availability.AVAILABLE.value
            self.updated_at = now
        self.raise_(AgentApproved(agent_id=str(self.id), phone=self.phone, approved_at=now))

    def reject(self, reason: str, now: datetime | None = None) -> None:
        if self.account_status != AccountStatus.PENDING.value:
            raise ValidationError({"account_status": ["Only pending registrations can be rejected"]})
        now = now or datetime.now(UTC)
        self.account_status = AccountStatus.DELETED.value
        self.rejection_reason = reason
        self.updated_at = now
        self.raise_(AgentRejected(agent_id=str(self.id), phone=self.phone, reason=reason, rejected_at=now))

    def suspend(self, reason: str | None = None, now: datetime | None = None) -> None:
        if self.account_status != AccountStatus.ACTIVE.value:
            raise ValidationError({"account_status": ["Only active agents can be suspended"]})
        if self.current_order_id:
            raise ValidationError({"current_order_id": ["Release the agent's current order before suspending"]})
        now = now or datetime.now(UTC)
        with atomic_change(self):
            self.account_status = AccountStatus.SUSPENDED.value
            self.availability = Availability.OFFLINE.value
            self.updated_at = now
        self.raise_(AgentSuspended(agent_id=str(self.id), reason=reason, suspended_at=now))

    # -------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------
    def set_availability(self, availability: str, now: datetime | None = None) -> bool:
        """Manual toggle between Available and Offline. Returns False when nothing changed."""
        if availability == Availability.BUSY.value:
            raise ValidationError({"availability": ["Busy is set by assignment, not manually"]})
        if availability not in (Availability.AVAILABLE.value, Availability.OFFLINE.value):
            raise ValidationError({"availability": [f"Unknown availability: {availability}"]})
        if not self.approved:
            raise ValidationError({"account_status": [f"A {self.account_status} agent cannot change availability"]})
        if self.current_order_id:
            raise ValidationError({"availability": ["Agent is holding an order"]})
        if self.availability == availability:
            return False

        now = now or datetime.now(UTC)
        previous = self.availability
        self.availability = availability
        self.updated_at = now
        self.raise_(
            AgentAvailabilityChanged(
                agent_id=str(self.id),
                previous_availability=previous,
                availability=availability,
                changed_at=now,
            )
        )
        return True

    def update_location(self, lat: float, lng: float, now: datetime | None = None) -> None:
        now = now or datetime.now(UTC)
        self.location = Location(lat=lat, lng=lng, last_updated=now)
        self.updated_at = now
        self.raise_(AgentLocationUpdated(agent_id=str(self.id), lat=lat, lng=lng, updated_at=now))

    # -------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------
    def take_order(self, order_id: str, now: datetime | None = None) -> None:
        if not self.is_eligible:
            raise ValidationError({"availability": [f"Agent is {self.account_status}/{self.availability}"]})
        now = now or datetime.now(UTC)
        perf = self.performance or Performance()
        with atomic_change(self):
            self.availability = Availability.BUSY.value
            self.current_order_id = order_id
            self.performance = Performance(
                orders_assigned=(perf.orders_assigned or 0) + 1,
                deliveries_completed=perf.deliveries_completed or 0,
                average_rating=perf.average_rating or 0.0,
                total_earnings=perf.total_earnings or 0.0,
            )
            self.assigned_at = now
            self.updated_at = now
        self.raise_(
            AgentAvailabilityChanged(
                agent_id=str(self.id),
                previous_availability=Availability.AVAILABLE.value,
                availability=Availability.BUSY.value,
                current_order_id=order_id,
                changed_at=now,
            )
        )

    def release(self, order_id: str | None = None, now: datetime | None = None) -> bool:
        """Free the agent. Releasing an already free agent is a no-op.

        With ``order_id`` the agent is only released while it still holds that
        order. Returns True when anything changed.
        """
        if not self.current_order_id:
            return False
        if order_id is not None and str(self.current_order_id) != str(order_id):
            return False

        now = now or datetime.now(UTC)
        target = Availability.AVAILABLE.value if self.approved else Availability.OFFLINE.value
        with atomic_change(self):
            self.availability = target
            self.current_order_id = None
            self.updated_at = now
        self.raise_(
            AgentAvailabilityChanged(
                agent_id=str(self.id),
                previous_availability=Availability.BUSY.value,
                availability=target,
                current_order_id=None,
                changed_at=now,
            )
        )
        return True

    def record_delivery_completed(self, order_id: str, rating: float | None = None, now: datetime | None = None) -> None:
        now = now or datetime.now(UTC)
        perf = self.performance or Performance()
        completed = (perf.deliveries_completed or 0) + 1
        average = perf.average_rating or 0.0
        if rating is not None:
            average = rolling_average(average, completed, rating)
        self.performance = Performance(
            orders_assigned=perf.orders_assigned or 0,
            deliveries_completed=completed,
            average_rating=average,
            total_earnings=perf.total_earnings or 0.0,
        )
        self.last_delivery_at = now
        self.updated_at = now
        self.raise_(
            AgentDeliveryRecorded(
                agent_id=str(self.id),
                order_id=order_id,
                deliveries_completed=completed,
                average_rating=average,
                rating=rating,
                recorded_at=now,
            )
        )
