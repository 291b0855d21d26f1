"""Agent availability and location — commands and handler.

Agents toggle themselves between Available and Offline; Busy only ever comes
from an assignment. The bulk variant skips agents it cannot change and
reports them.
"""

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from dispatch.agent.agent import Agent, Availability
from dispatch.domain import dispatch
from dispatch.utils.writes import process_with_retry

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Agent")
class UpdateAgentAvailability:
    agent_id = Identifier(required=True)
    availability = String(required=True, choices=Availability)


@dispatch.command(part_of="Agent")
class UpdateAgentLocation:
    agent_id = Identifier(required=True)
    lat = Float(required=True, min_value=-90.0, max_value=90.0)
    lng = Float(required=True, min_value=-180.0, max_value=180.0)


@dispatch.command_handler(part_of=Agent)
class AvailabilityHandler:
    @handle(UpdateAgentAvailability)
    def update_availability(self, command):
        repo = current_domain.repository_for(Agent)
        agent = repo.get(command.agent_id)
        if agent.set_availability(command.availability):
            repo.add(agent)
        return agent.availability

    @handle(UpdateAgentLocation)
    def update_location(self, command):
        repo = current_domain.repository_for(Agent)
        agent = repo.get(command.agent_id)
        agent.update_location(command.lat, command.lng)
        repo.add(agent)


def bulk_update_agents(agent_ids: list[str], availability: str) -> dict:
    """Set availability for many agents, one unit of work each.

    Missing agents, agents that cannot change (pending, suspended, holding an
    order) and conflicts that outlive the retries are skipped.
    """
    updated, skipped = [], []
    for agent_id in agent_ids:
        try:
            process_with_retry(UpdateAgentAvailability(agent_id=agent_id, availability=availability))
        except (ObjectNotFoundError, ExpectedVersionError, ValidationError) as exc:
            logger.info("Agent skipped in bulk update", agent_id=agent_id, error=exc.__class__.__name__)
            skipped.append(agent_id)
        else:
            updated.append(agent_id)
    return {"updated": updated, "skipped": skipped}
