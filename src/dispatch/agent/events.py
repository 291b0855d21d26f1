"""Agent domain events — onboarding, availability and assignment facts."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from dispatch.domain import dispatch


@dispatch.event(part_of="Agent")
class AgentRegistered:
    """A delivery agent signed up and awaits approval."""

    __version__ = 1

    agent_id = Identifier(required=True)
    first_name = String(required=True)
    last_name = String()
    phone = String(required=True)
    city = String()
    registered_at = DateTime(required=True)


@dispatch.event(part_of="Agent")
class AgentApproved:
    """An admin approved the agent; the agent is now available for work."""

    __version__ = 1

    agent_id = Identifier(required=True)
    phone = String()
    approved_at = DateTime(required=True)


@dispatch.event(part_of="Agent")
class AgentRejected:
    """An admin rejected the agent's registration."""

    __version__ = 1

    agent_id = Identifier(required=True)
    phone = String()
    reason = String()
    rejected_at = DateTime(required=True)


@dispatch.event(part_of="Agent")
class AgentSuspended:
    __version__ = 1

    agent_id = Identifier(required=True)
    reason = String()
    suspended_at = DateTime(required=True)


@dispatch.event(part_of="Agent")
class AgentAvailabilityChanged:
    """Availability moved between Available, Busy and Offline."""

    __version__ = 1

    agent_id = Identifier(required=True)
    previous_availability = String()
    availability = String(required=True)
    current_order_id = Identifier()
    changed_at = DateTime(required=True)


@dispatch.event(part_of="Agent")
class AgentLocationUpdated:
    __version__ = 1

    agent_id = Identifier(required=True)
    lat = Float(required=True)
    lng = Float(required=True)
    updated_at = DateTime(required=True)


@dispatch.event(part_of="Agent")
class AgentDeliveryRecorded:
    """Performance counters changed after a completed delivery."""

    __version__ = 1

    agent_id = Identifier(required=True)
    order_id = Identifier(required=True)
    deliveries_completed = Integer(required=True)
    average_rating = Float()
    rating = Float()
    recorded_at = DateTime(required=True)
