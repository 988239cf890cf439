"""
Project management for organization members.

The organization is explicit on create and list; for every other operation
it is the one owning the project in the path.
"""

import logging
from typing import Any, Dict, List, Optional

from ..auth import Identity
from ..database.models import ProjectDB, ProjectStatusEnum
from ..database.repositories.projects import ProjectRepository, get_project_repository
from ..errors import AuthenticationError, ValidationError
from .org_context import load_member_project

logger = logging.getLogger(__name__)

PROJECT_STATUSES = frozenset(status.value for status in ProjectStatusEnum)


class ProjectService:
    """Create, list, read, edit and delete projects."""

    def __init__(self, projects: Optional[ProjectRepository] = None):
        self.projects = projects or get_project_repository()

    async def create_project(self, identity: Identity, organization_id: str, **fields: Any) -> ProjectDB:
        """
        Create a draft project in an organization the caller belongs to.

        Raises:
            AccessDeniedError: Caller is not a member of the organization
        """
        if identity is None:
            raise AuthenticationError()
        identity.require_member(organization_id)

        project = await self.projects.create(
            organization_id=organization_id,
            created_by=identity.user_id,
            **fields,
        )
        logger.info(f"Project {project.id} created by {identity.user_id}")
        return project

    async def list_projects(
        self,
        identity: Identity,
        organization_id: str,
        status: Optional[str] = None,
    ) -> List[ProjectDB]:
        if identity is None:
            raise AuthenticationError()
        identity.require_member(organization_id)

        if status and status not in PROJECT_STATUSES:
            raise ValidationError(f"Unknown project status: {status}")
        return await self.projects.list_for_organization(organization_id, status=status)

    async def get_project(self, project_id: str, identity: Identity) -> ProjectDB:
        return await load_member_project(self.projects, project_id, identity)

    async def update_project(self, project_id: str, identity: Identity, fields: Dict[str, Any]) -> ProjectDB:
        project = await load_member_project(self.projects, project_id, identity)
        if not fields:
            return project
        return await self.projects.update(project.id, **fields)

    async def delete_project(self, project_id: str, identity: Identity) -> None:
        """Delete a project with its timelines, chats and change orders."""
        project = await load_member_project(self.projects, project_id, identity)
        await self.projects.delete(project.id)
        logger.info(f"Project {project.id} deleted by {identity.user_id}")


# Singleton
_project_service: Optional[ProjectService] = None


def get_project_service() -> ProjectService:
    """Get the project service singleton."""
    global _project_service
    if _project_service is None:
        _project_service = ProjectService()
    return _project_service
