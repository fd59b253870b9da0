"""Reusable FastAPI dependencies for caller identity and role checks.

Authentication happens upstream; the gateway forwards the verified caller as
`X-Actor-Id`, `X-Actor-Name`, and `X-Actor-Role` headers.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from course_approval.db.session import get_session
from course_approval.services.actors import Actor

SESSION_DEP = Depends(get_session)

ADMIN_ROLE = "admin"
ACTOR_ROLES = frozenset({"admin", "reviewer", "instructor"})


def get_actor(
    x_actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
    x_actor_name: str = Header(default="", alias="X-Actor-Name"),
    x_actor_role: str = Header(default="instructor", alias="X-Actor-Role"),
) -> Actor:
    """Resolve the calling actor from forwarded identity headers."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Actor-Id header",
        )
    try:
        actor_id = UUID(x_actor_id.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id must be a UUID",
        ) from exc
    role = x_actor_role.strip().lower()
    if role not in ACTOR_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown actor role {role!r}",
        )
    return Actor(id=actor_id, name=x_actor_name.strip(), role=role)


ACTOR_DEP = Depends(get_actor)


def require_admin(actor: Actor = ACTOR_DEP) -> Actor:
    """Require the administrator role."""
    if actor.role != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return actor


ADMIN_DEP = Depends(require_admin)
