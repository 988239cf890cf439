"""
Identity of organization members.

Clients never authenticate; they are identified only by the share token of
the timeline they were sent. Organization members present a bearer token
that resolves to a user id and the roles held in each organization.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from .database.models import MemberRoleEnum
from .database.repositories.organizations import OrganizationRepository, get_organization_repository
from .errors import AccessDeniedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    memberships: Dict[str, str] = field(default_factory=dict)

    def is_member(self, organization_id: str) -> bool:
        return organization_id in self.memberships

    def is_owner(self, organization_id: str) -> bool:
        return self.memberships.get(organization_id) == MemberRoleEnum.OWNER.value

    def require_member(self, organization_id: str) -> None:
        if not self.is_member(organization_id):
            raise AccessDeniedError("Access denied")

    def require_owner(self, organization_id: str) -> None:
        if not self.is_owner(organization_id):
            raise AccessDeniedError("Only organization owners can do this")


class IdentityProvider:
    """Resolves bearer tokens against stored auth sessions."""

    def __init__(self, organizations: Optional[OrganizationRepository] = None):
        self.organizations = organizations or get_organization_repository()

    async def get_identity(self, token: str) -> Optional[Identity]:
        if not token:
            return None

        user = await self.organizations.get_user_for_token(token)
        if user is None:
            return None

        memberships = await self.organizations.get_memberships(user.id)
        return Identity(user_id=user.id, memberships=memberships)


# Singleton
_identity_provider: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    """Get the identity provider singleton."""
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = IdentityProvider()
    return _identity_provider
