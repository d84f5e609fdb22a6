"""Actor identity threaded explicitly through every flow operation."""

from __future__ import annotations

from dataclasses import dataclass

from litestar import Request

from litestar_expresso.enums import ActorRole
from litestar_expresso.exceptions import (
    AuthenticationRequiredError,
    PermissionDeniedError,
)

ACTOR_ID_HEADER = "x-actor-id"
ACTOR_ROLE_HEADER = "x-actor-role"
SESSION_ID_HEADER = "x-session-id"


@dataclass(frozen=True)
class SessionContext:
    """Who is performing an operation.

    Built once at the top of the call chain (one per request) and passed
    down; anonymous quote/checkout sessions carry only ``session_id``.
    """

    actor_id: str | None = None
    role: ActorRole = ActorRole.ANONYMOUS
    session_id: str | None = None

    @classmethod
    def anonymous(cls, session_id: str) -> SessionContext:
        return cls(session_id=session_id)

    @classmethod
    def driver(cls, motorista_id: str) -> SessionContext:
        return cls(actor_id=motorista_id, role=ActorRole.DRIVER)

    @classmethod
    def admin(cls, admin_id: str) -> SessionContext:
        return cls(actor_id=admin_id, role=ActorRole.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    def require_actor(self) -> str:
        """Return the actor id, raising if the session is anonymous."""
        if not self.actor_id:
            raise AuthenticationRequiredError()
        return self.actor_id

    def require_role(self, *roles: ActorRole) -> str:
        """Return the actor id if the actor holds one of ``roles``."""
        actor_id = self.require_actor()
        if self.role not in roles:
            raise PermissionDeniedError(
                f"Role {self.role} may not perform this operation"
            )
        return actor_id

    def owner_reference(self) -> tuple[str | None, str | None]:
        """(user id, anonymous session id) to stamp on a new record."""
        if self.actor_id:
            return self.actor_id, None
        return None, self.session_id


def provide_session_context(request: Request) -> SessionContext:
    """Router dependency building the context from request headers.

    Authentication itself happens upstream; these headers are set by the
    gateway once the caller is authenticated.
    """
    headers = request.headers
    raw_role = headers.get(ACTOR_ROLE_HEADER)
    actor_id = headers.get(ACTOR_ID_HEADER) or None
    try:
        role = ActorRole(raw_role) if raw_role else None
    except ValueError as exc:
        raise AuthenticationRequiredError(
            f"Unknown actor role {raw_role!r}"
        ) from exc
    if role is None:
        role = ActorRole.DRIVER if actor_id else ActorRole.ANONYMOUS
    return SessionContext(
        actor_id=actor_id,
        role=role,
        session_id=headers.get(SESSION_ID_HEADER) or None,
    )
