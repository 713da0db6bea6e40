"""Route modules exposed by the API package."""

from . import clients, equipment, metrics, ping, portal, tickets, users

__all__ = ["clients", "equipment", "metrics", "ping", "portal", "tickets", "users"]
