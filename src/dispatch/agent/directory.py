"""Agent directory — read-side queries over agents used by assignment."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from dispatch.agent.agent import AccountStatus, Agent, Availability

logger = structlog.get_logger(__name__)


class AgentDirectory:
    @property
    def repository(self):
        return current_domain.repository_for(Agent)

    def get(self, agent_id: str) -> Agent:
        return self.repository.get(agent_id)

    def find(self, agent_id: str | None) -> Agent | None:
        """Lookup that treats a missing agent as a recoverable condition."""
        if not agent_id:
            return None
        try:
            return self.repository.get(agent_id)
        except ObjectNotFoundError:
            logger.warning("Agent not found", agent_id=agent_id)
            return None

    def eligible_agents(self) -> list[Agent]:
        """Active agents that are free right now, in stable registration order."""
        results = self.repository._dao.query.filter(
            account_status=AccountStatus.ACTIVE.value,
            availability=Availability.AVAILABLE.value,
        ).all()
        return sorted(results.items, key=lambda agent: (agent.created_at, str(agent.id)))

    def find_by_phone(self, phone: str) -> Agent | None:
        results = self.repository._dao.query.filter(phone=phone).all()
        return results.first if results.items else None

    def save(self, agent: Agent) -> None:
        self.repository.add(agent)
