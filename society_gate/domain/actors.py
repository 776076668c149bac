"""Acting operator identity passed explicitly through the core"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID


class Role(str, Enum):
    RESIDENT = "resident"
    SECURITY = "security"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: Role
    name: Optional[str] = None

    @property
    def resident_id(self) -> Optional[UUID]:
        """Residents authenticate with their directory id."""
        if self.role is not Role.RESIDENT:
            return None
        try:
            return UUID(self.actor_id)
        except ValueError:
            return None

    @property
    def is_operator(self) -> bool:
        return self.role in (Role.SECURITY, Role.ADMIN)
