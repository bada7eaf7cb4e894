"""HTTP routers for the helpdesk service."""

from . import dashboard, entities, ping, tickets

__all__ = ["dashboard", "entities", "ping", "tickets"]
