from __future__ import annotations
from dataclasses import dataclass

from townhall.models.category import Role


@dataclass(frozen=True)
class Viewer:
    """The authenticated caller: token claims merged with their profile row."""
    id: str
    email: str | None = None
    name: str | None = None
    role: Role = Role.CITIZEN
    email_verified: bool = False
    access_token: str | None = None

    def owns(self, owner_id: str | None) -> bool:
        return bool(owner_id) and owner_id == self.id

    def can_edit(self, owner_id: str | None) -> bool:
        return self.owns(owner_id) or self.role.can_edit_any_idea
