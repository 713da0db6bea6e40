"""System user directory."""

from .models import Role, SystemUser
from .repository import SystemUserRepository

__all__ = ["Role", "SystemUser", "SystemUserRepository"]
