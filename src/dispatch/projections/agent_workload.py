"""Agent workload — the dispatcher's board of agents and what they carry."""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from dispatch.agent.agent import AccountStatus, Agent, Availability
from dispatch.agent.events import (
    AgentApproved,
    AgentAvailabilityChanged,
    AgentDeliveryRecorded,
    AgentRegistered,
    AgentRejected,
    AgentSuspended,
)
from dispatch.domain import dispatch


@dispatch.projection
class AgentWorkloadView:
    agent_id = Identifier(identifier=True, required=True)
    name = String()
    phone = String()
    city = String()
    account_status = String(required=True)
    availability = String(required=True)
    current_order_id = Identifier()
    orders_assigned = Integer(default=0)
    deliveries_completed = Integer(default=0)
    average_rating = Float(default=0.0)
    updated_at = DateTime()


def _load(agent_id):
    repo = current_domain.repository_for(AgentWorkloadView)
    try:
        return repo, repo.get(agent_id)
    except ObjectNotFoundError:
        return repo, None


@dispatch.projector(projector_for=AgentWorkloadView, aggregates=[Agent])
class AgentWorkloadProjector:
    @on(AgentRegistered)
    def on_agent_registered(self, event):
        current_domain.repository_for(AgentWorkloadView).add(
            AgentWorkloadView(
                agent_id=event.agent_id,
                name=" ".join(p for p in (event.first_name, event.last_name) if p),
                phone=event.phone,
                city=event.city,
                account_status=AccountStatus.PENDING.value,
                availability=Availability.OFFLINE.value,
                updated_at=event.registered_at,
            )
        )

    @on(AgentApproved)
    def on_agent_approved(self, event):
        repo, view = _load(event.agent_id)
        if view is None:
            return
        view.account_status = AccountStatus.ACTIVE.value
        view.availability = Availability.AVAILABLE.value
        view.updated_at = event.approved_at
        repo.add(view)

    @on(AgentRejected)
    def on_agent_rejected(self, event):
        repo, view = _load(event.agent_id)
        if view is None:
            return
        view.account_status = AccountStatus.DELETED.value
        view.updated_at = event.rejected_at
        repo.add(view)

    @on(AgentSuspended)
    def on_agent_suspended(self, event):
        repo, view = _load(event.agent_id)
        if view is None:
            return
        view.account_status = AccountStatus.SUSPENDED.value
        view.availability = Availability.OFFLINE.value
        view.updated_at = event.suspended_at
        repo.add(view)

    @on(AgentAvailabilityChanged)
    def on_availability_changed(self, event):
        repo, view = _load(event.agent_id)
        if view is None:
            return
        view.availability = event.availability
        view.current_order_id = event.current_order_id
        if event.availability == Availability.BUSY.value:
            view.orders_assigned = (view.orders_assigned or 0) + 1
        view.updated_at = event.changed_at
        repo.add(view)

    @on(AgentDeliveryRecorded)
    def on_delivery_recorded(self, event):
        repo, view = _load(event.agent_id)
        if view is None:
            return
        view.deliveries_completed = event.deliveries_completed
        view.average_rating = event.average_rating
        view.updated_at = event.recorded_at
        repo.add(view)
