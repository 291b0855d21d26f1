"""Dispatch domain API package."""

from dispatch.api.routes import agent_router, assignment_router, courier_router, order_router

__all__ = ["order_router", "agent_router", "assignment_router", "courier_router"]
