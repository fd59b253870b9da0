"""Identity of whoever triggers a pipeline action."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")


@dataclass(frozen=True)
class Actor:
    """Caller identity as supplied by the upstream auth layer."""

    id: UUID
    name: str = ""
    role: str = "admin"  # admin | reviewer | instructor | system

    @property
    def is_system(self) -> bool:
        return self.id == SYSTEM_ACTOR_ID


SYSTEM_ACTOR = Actor(id=SYSTEM_ACTOR_ID, name="system", role="system")
