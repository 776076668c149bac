"""
Identity providers
Resolve the acting operator for a request. The gateway receives the result
explicitly; nothing in the core reads tokens or headers on its own.
"""
from typing import Mapping, Optional, Protocol

from society_gate.domain.actors import Actor, Role
from society_gate.domain.errors import Unauthorized


class IdentityProvider(Protocol):
    def identify(self, headers: Mapping[str, str]) -> Actor:
        ...


class HeaderIdentityProvider:
    """
    MVP identity: the upstream gateway (dashboard / mobile app backend) has
    already authenticated the user and forwards who they are.

    X-Actor-ID   - operator or resident id (residents use their directory id)
    X-Actor-Role - resident | security | admin
    X-Actor-Name - optional display name
    """

    id_header = "x-actor-id"
    role_header = "x-actor-role"
    name_header = "x-actor-name"

    def identify(self, headers: Mapping[str, str]) -> Actor:
        actor_id = (headers.get(self.id_header) or "").strip()
        raw_role = (headers.get(self.role_header) or "").strip().lower()

        if not actor_id or not raw_role:
            raise Unauthorized("Missing actor identity")

        try:
            role = Role(raw_role)
        except ValueError:
            raise Unauthorized(f"Unknown role '{raw_role}'")

        name: Optional[str] = headers.get(self.name_header) or None
        return Actor(actor_id=actor_id, role=role, name=name)
