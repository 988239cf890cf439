"""
Project repository.

Projects belong to one organization and move through
draft → form_sent → scoping → approved → in_progress → completed.
"""

import logging
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import ProjectDB, ProjectStatusEnum, utcnow
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from ...errors import NotFoundError

logger = logging.getLogger(__name__)

# Fields members may change after creation; status moves only through workflow actions
EDITABLE_FIELDS = frozenset({
    "name",
    "client_name",
    "client_email",
    "project_type",
    "project_brief",
    "budget",
    "estimated_weeks",
})


class ProjectRepository:
    """Repository for project operations."""

    def __init__(self):
        self.db = get_database()

    async def create(
        self,
        organization_id: str,
        name: str,
        client_name: str,
        client_email: Optional[str] = None,
        project_type: str = "custom",
        project_brief: Optional[str] = None,
        budget: Optional[Decimal] = None,
        estimated_weeks: Optional[int] = None,
        form_responses: Optional[Dict[str, Any]] = None,
        created_by: Optional[str] = None,
    ) -> ProjectDB:
        """Create a new draft project."""
        async with self.db.session() as session:
            try:
                project = ProjectDB(
                    organization_id=organization_id,
                    name=name,
                    client_name=client_name,
                    client_email=client_email,
                    project_type=project_type,
                    project_brief=project_brief,
                    budget=budget,
                    estimated_weeks=estimated_weeks,
                    form_responses=form_responses,
                    status=ProjectStatusEnum.DRAFT.value,
                    created_by=created_by,
                )
                session.add(project)
                await session.flush()

                logger.info(f"Created project: {name}")
                return project

            except IntegrityError as e:
                logger.error(f"Constraint violation creating project {name}: {e}")
                raise DatabaseConstraintError(f"Cannot create project {name}: unknown organization or user") from e

            except Exception as e:
                logger.error(f"Project creation failed for {name}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create project {name}: {e}") from e

    async def get_by_id(self, project_id: str) -> Optional[ProjectDB]:
        """Get project by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectDB).where(ProjectDB.id == project_id)
            )
            return result.scalar_one_or_none()

    async def list_for_organization(self, organization_id: str, status: Optional[str] = None) -> List[ProjectDB]:
        """Get the projects of an organization, newest first, optionally by status."""
        async with self.db.session() as session:
            query = select(ProjectDB).where(ProjectDB.organization_id == organization_id)
            if status:
                query = query.where(ProjectDB.status == status)
            result = await session.execute(query.order_by(ProjectDB.created_at.desc()))
            return list(result.scalars().all())

    async def update(self, project_id: str, **fields: Any) -> ProjectDB:
        """Update editable project fields.

        Raises:
            NotFoundError: If project not found
        """
        async with self.db.session() as session:
            project = await session.get(ProjectDB, project_id)
            if project is None:
                raise NotFoundError("Project not found")

            for name, value in fields.items():
                if name not in EDITABLE_FIELDS:
                    raise ValueError(f"Project field {name} is not editable")
                setattr(project, name, value)
            project.updated_at = utcnow()
            await session.flush()

            logger.info(f"Updated project {project_id}: {sorted(fields)}")
            return project

    async def update_status(self, project_id: str, status: ProjectStatusEnum) -> None:
        """Move a project to a new status.

        Raises:
            NotFoundError: If project not found
        """
        async with self.db.session() as session:
            result = await session.execute(
                update(ProjectDB)
                .where(ProjectDB.id == project_id)
                .values(status=status.value, updated_at=utcnow())
            )
            if result.rowcount == 0:
                raise NotFoundError("Project not found")

        logger.info(f"Project {project_id} status -> {status.value}")

    async def delete(self, project_id: str) -> bool:
        """Delete a project; timelines, sessions, proposals and change orders cascade."""
        async with self.db.session() as session:
            project = await session.get(ProjectDB, project_id)
            if project is None:
                return False
            await session.delete(project)
            logger.info(f"Deleted project {project_id}")
            return True


# Singleton
_project_repository: Optional[ProjectRepository] = None


def get_project_repository() -> ProjectRepository:
    """Get the project repository singleton."""
    global _project_repository
    if _project_repository is None:
        _project_repository = ProjectRepository()
    return _project_repository
