"""Actor resolution — who is making the request, and with which permissions.

Token issuance and verification happen upstream (API gateway / auth service);
by the time a request reaches this service the gateway has stamped the actor
id and role into headers. Resolvers are swappable through ``app.state``.
"""

from __future__ import annotations

from typing import Protocol

from fastapi import Request

from thorbis.core.config import settings
from thorbis.core.exceptions import ForbiddenError, UnauthorizedError
from thorbis.lifecycle.permissions import Actor, Role


class ActorResolver(Protocol):
    def resolve(self, request: Request) -> Actor: ...


class HeaderActorResolver:
    """Builds an :class:`Actor` from the gateway's identity headers."""

    def __init__(
        self,
        id_header: str = settings.actor_id_header,
        role_header: str = settings.actor_role_header,
    ):
        self._id_header = id_header
        self._role_header = role_header

    def resolve(self, request: Request) -> Actor:
        actor_id = (request.headers.get(self._id_header) or "").strip()
        if not actor_id:
            raise UnauthorizedError()

        raw_role = (request.headers.get(self._role_header) or "").strip().lower()
        try:
            role = Role(raw_role)
        except ValueError:
            raise ForbiddenError(f"Unrecognised role '{raw_role}'") from None
        return Actor.for_role(actor_id, role)


def get_current_actor(request: Request) -> Actor:
    """FastAPI dependency returning the resolved actor for this request."""
    resolver: ActorResolver = request.app.state.actor_resolver
    return resolver.resolve(request)
