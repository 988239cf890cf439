"""
Organization context for member-facing operations.

The organization is always the one owning the resource named in the
request; the caller's membership in it is checked explicitly.
"""

from decimal import Decimal
from typing import Optional, Tuple

from config import settings
from ..auth import Identity
from ..database.models import OrganizationSettingsDB, ProjectDB
from ..database.repositories.organizations import OrganizationRepository
from ..database.repositories.projects import ProjectRepository
from ..errors import AuthenticationError, NotFoundError


async def load_member_project(
    projects: ProjectRepository,
    project_id: str,
    identity: Optional[Identity],
    owner: bool = False,
) -> ProjectDB:
    """
    Load a project the caller belongs to.

    Raises:
        AuthenticationError: No identity
        NotFoundError: Project not found
        AccessDeniedError: Caller is not a member (or owner) of its organization
    """
    if identity is None:
        raise AuthenticationError()

    project = await projects.get_by_id(project_id)
    if project is None:
        raise NotFoundError("Project not found")

    if owner:
        identity.require_owner(project.organization_id)
    else:
        identity.require_member(project.organization_id)
    return project


def effective_pricing(org_settings: Optional[OrganizationSettingsDB]) -> Tuple[Decimal, int]:
    """``(hourly_rate, hours_per_week)`` with configured fallbacks."""
    if org_settings is None:
        return settings.default_hourly_rate, settings.default_hours_per_week
    hourly_rate = org_settings.default_hourly_rate
    if hourly_rate is None:
        hourly_rate = settings.default_hourly_rate
    hours_per_week = org_settings.hours_per_week or settings.default_hours_per_week
    return Decimal(hourly_rate), hours_per_week


async def load_pricing(organizations: OrganizationRepository, organization_id: str) -> Tuple[Decimal, int]:
    return effective_pricing(await organizations.get_settings(organization_id))
