from dataclasses import dataclass
from uuid import UUID

from bookloop.domain.enums import Role


@dataclass(frozen=True)
class Caller:
    """The authenticated user behind a request."""

    user_id: UUID
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN
