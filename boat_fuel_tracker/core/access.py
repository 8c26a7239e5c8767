"""
Access control for user-scoped data.

A user may read and change their own fuel-ups; an admin may touch anyone's.
The guard is stateless and performs no I/O.
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet

from .errors import ForbiddenError
from ..storage.models import User

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_ROLE = "user"


@dataclass(frozen=True)
class Identity:
    """Already-authenticated identity acting on a request."""
    user_id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @classmethod
    def for_user(cls, user: User) -> "Identity":
        """Build the identity of a stored user; admins get the admin role."""
        roles = {USER_ROLE, ADMIN_ROLE} if user.is_admin else {USER_ROLE}
        return cls(user_id=user.user_id, roles=frozenset(roles))


def authorize(identity: Identity, target_user_id: str) -> None:
    """Allow the identity to act on ``target_user_id``'s data or raise.

    Args:
        identity: Acting identity
        target_user_id: Owner of the data being accessed

    Raises:
        ForbiddenError: If the identity is neither the owner nor an admin
    """
    if identity.user_id == target_user_id or identity.has_role(ADMIN_ROLE):
        return
    logger.warning("User %s denied access to data of %s", identity.user_id, target_user_id)
    raise ForbiddenError(
        f"User {identity.user_id} may only access their own fuel-ups",
        user_id=identity.user_id,
        target_user_id=target_user_id
    )
