"""
Organization repository: memberships, owners, pricing settings and
bearer-token identity lookups.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Tuple

from sqlalchemy import select, and_

from ..connection import get_database
from ..models import (
    AuthSessionDB,
    OrganizationDB,
    OrganizationMemberDB,
    OrganizationSettingsDB,
    MemberRoleEnum,
    UserDB,
)

logger = logging.getLogger(__name__)


class OrganizationRepository:
    """Repository for organization and membership queries."""

    def __init__(self):
        self.db = get_database()

    async def get_by_id(self, organization_id: str) -> Optional[OrganizationDB]:
        """Get organization by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(OrganizationDB).where(OrganizationDB.id == organization_id)
            )
            return result.scalar_one_or_none()

    async def get_settings(self, organization_id: str) -> Optional[OrganizationSettingsDB]:
        """Get pricing settings of an organization."""
        async with self.db.session() as session:
            result = await session.execute(
                select(OrganizationSettingsDB)
                .where(OrganizationSettingsDB.organization_id == organization_id)
            )
            return result.scalar_one_or_none()

    async def get_owner_contacts(self, organization_id: str) -> List[Tuple[Optional[str], str]]:
        """Get ``(email, name)`` of every owner of an organization."""
        async with self.db.session() as session:
            result = await session.execute(
                select(UserDB.email, UserDB.name)
                .join(OrganizationMemberDB, OrganizationMemberDB.user_id == UserDB.id)
                .where(
                    and_(
                        OrganizationMemberDB.organization_id == organization_id,
                        OrganizationMemberDB.role == MemberRoleEnum.OWNER.value,
                    )
                )
            )
            return [(row[0], row[1]) for row in result.all()]

    async def get_user_for_token(self, token: str) -> Optional[UserDB]:
        """Resolve an unexpired bearer token to its user."""
        async with self.db.session() as session:
            result = await session.execute(
                select(UserDB, AuthSessionDB.expires_at)
                .join(AuthSessionDB, AuthSessionDB.user_id == UserDB.id)
                .where(AuthSessionDB.token == token)
            )
            row = result.first()
            if row is None:
                return None

            user, expires_at = row[0], row[1]
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= datetime.now(timezone.utc):
                logger.info(f"Expired auth session for user {user.id}")
                return None
            return user

    async def get_memberships(self, user_id: str) -> Dict[str, str]:
        """Get ``{organization_id: role}`` for a user."""
        async with self.db.session() as session:
            result = await session.execute(
                select(OrganizationMemberDB.organization_id, OrganizationMemberDB.role)
                .where(OrganizationMemberDB.user_id == user_id)
            )
            return {row[0]: row[1] for row in result.all()}


# Singleton
_organization_repository: Optional[OrganizationRepository] = None


def get_organization_repository() -> OrganizationRepository:
    """Get the organization repository singleton."""
    global _organization_repository
    if _organization_repository is None:
        _organization_repository = OrganizationRepository()
    return _organization_repository
