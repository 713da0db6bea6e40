from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Roles a system user can hold."""

    ADMIN = "admin"
    USER = "user"


@dataclass(slots=True)
class SystemUser:
    """Internal actor: ticket assignee and audit attribution target."""

    id: str
    name: str
    email: str
    role: Role
    active: bool
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def has_role(self, role: Role) -> bool:
        return self.role == Role.ADMIN or self.role == role
