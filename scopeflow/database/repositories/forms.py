"""
Intake form repository.

Each project has at most one form. Clients open it through its share token
and submit it once; submission also records the answers on the project
and moves it to ``scoping``.
"""

import logging
from typing import Optional, Tuple, Dict, Any

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import ProjectFormDB, ProjectDB, ProjectStatusEnum, utcnow
from ..exceptions import DatabaseConstraintError

logger = logging.getLogger(__name__)


class FormRepository:
    """Repository for intake form operations."""

    def __init__(self):
        self.db = get_database()

    async def get_for_project(self, project_id: str) -> Optional[ProjectFormDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectFormDB).where(ProjectFormDB.project_id == project_id)
            )
            return result.scalar_one_or_none()

    async def save_for_project(self, project_id: str, form_data: Dict[str, Any], share_token: str) -> ProjectFormDB:
        """Store a generated form, replacing the questions of an existing one.

        ``share_token`` is used only when the project has no form yet.

        Raises:
            DatabaseConstraintError: If the project does not exist
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectFormDB).where(ProjectFormDB.project_id == project_id)
            )
            form = result.scalar_one_or_none()

            if form is not None:
                form.form_data = form_data
                form.updated_at = utcnow()
                logger.info(f"Replaced intake form {form.id} for project {project_id}")
                return form

            try:
                form = ProjectFormDB(project_id=project_id, form_data=form_data, share_token=share_token)
                session.add(form)
                await session.flush()
            except IntegrityError as e:
                logger.error(f"Constraint violation creating form for project {project_id}: {e}")
                raise DatabaseConstraintError(f"Cannot create intake form for project {project_id}") from e

            logger.info(f"Created intake form {form.id} for project {project_id}")
            return form

    async def get_by_share_token(self, share_token: str) -> Optional[Tuple[ProjectFormDB, ProjectDB]]:
        """Get a form together with its project."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectFormDB, ProjectDB)
                .join(ProjectDB, ProjectFormDB.project_id == ProjectDB.id)
                .where(ProjectFormDB.share_token == share_token)
                .limit(1)
            )
            row = result.first()
            if row is None:
                return None
            return row[0], row[1]

    async def record_submission(
        self,
        form_id: str,
        responses: Dict[str, Any],
        client_email: Optional[str] = None,
    ) -> bool:
        """Store the client's answers unless the form was already submitted.

        The answers are copied to the project, which moves to ``scoping``,
        in the same transaction.

        Returns:
            False if another submission got there first
        """
        now = utcnow()
        async with self.db.session() as session:
            values = {"submitted_data": responses, "submitted_at": now, "updated_at": now}
            if client_email:
                values["client_email"] = client_email

            result = await session.execute(
                update(ProjectFormDB)
                .where(
                    and_(
                        ProjectFormDB.id == form_id,
                        ProjectFormDB.submitted_at.is_(None),
                    )
                )
                .values(**values)
            )
            if result.rowcount == 0:
                return False

            project_id = (await session.execute(
                select(ProjectFormDB.project_id).where(ProjectFormDB.id == form_id)
            )).scalar_one()

            await session.execute(
                update(ProjectDB)
                .where(ProjectDB.id == project_id)
                .values(
                    form_responses=responses,
                    status=ProjectStatusEnum.SCOPING.value,
                    updated_at=now,
                )
            )

        logger.info(f"Intake form {form_id} submitted")
        return True


# Singleton
_form_repository: Optional[FormRepository] = None


def get_form_repository() -> FormRepository:
    """Get the form repository singleton."""
    global _form_repository
    if _form_repository is None:
        _form_repository = FormRepository()
    return _form_repository
