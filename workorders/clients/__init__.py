"""Client registry and the self-service portal."""

from .models import Client

__all__ = ["Client"]
