"""Agent onboarding — registration and moderation commands.

A registration starts Pending and Offline. Approval makes the agent Active
and Available; rejection closes the registration with a reason.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.agent.agent import Agent
from dispatch.agent.directory import AgentDirectory
from dispatch.domain import dispatch


@dispatch.command(part_of="Agent")
class RegisterAgent:
    first_name = String(required=True, max_length=100)
    last_name = String(max_length=100)
    phone = String(required=True, max_length=20)
    email = String(max_length=255)
    city = String(max_length=100)


@dispatch.command(part_of="Agent")
class ApproveAgent:
    agent_id = Identifier(required=True)


@dispatch.command(part_of="Agent")
class RejectAgent:
    agent_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@dispatch.command(part_of="Agent")
class SuspendAgent:
    agent_id = Identifier(required=True)
    reason = String(max_length=500)


@dispatch.command_handler(part_of=Agent)
class OnboardingHandler:
    @handle(RegisterAgent)
    def register(self, command):
        directory = AgentDirectory()
        if directory.find_by_phone(command.phone):
            raise ValidationError({"phone": ["An agent with this phone number is already registered"]})

        agent = Agent.register(
            first_name=command.first_name,
            last_name=command.last_name,
            phone=command.phone,
            email=command.email,
            city=command.city,
        )
        directory.save(agent)
        return str(agent.id)

    @handle(ApproveAgent)
    def approve(self, command):
        repo = current_domain.repository_for(Agent)
        agent = repo.get(command.agent_id)
        agent.approve()
        repo.add(agent)

    @handle(RejectAgent)
    def reject(self, command):
        repo = current_domain.repository_for(Agent)
        agent = repo.get(command.agent_id)
        agent.reject(command.reason)
        repo.add(agent)

    @handle(SuspendAgent)
    def suspend(self, command):
        repo = current_domain.repository_for(Agent)
        agent = repo.get(command.agent_id)
        agent.suspend(command.reason)
        repo.add(agent)
