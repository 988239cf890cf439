"""
Timeline repository (the baseline store).

A timeline is created by timeline generation and later shared through
an unguessable share token once its project is approved.
"""

import logging
from decimal import Decimal
from typing import Optional, List, Tuple

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import TimelineDB, ProjectDB, utcnow
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class TimelineRepository:
    """Repository for timeline operations."""

    def __init__(self):
        self.db = get_database()

    async def create(
        self,
        project_id: str,
        phases: List[dict],
        total_weeks: Decimal,
        total_hours: Decimal,
        total_cost: Decimal,
        milestones: Optional[List[dict]] = None,
        risks: Optional[List[dict]] = None,
    ) -> TimelineDB:
        """Store a newly generated timeline.

        Raises:
            DatabaseConstraintError: If the project does not exist
            DatabaseOperationError: If the insert fails
        """
        async with self.db.session() as session:
            try:
                timeline = TimelineDB(
                    project_id=project_id,
                    phases=phases,
                    milestones=milestones,
                    risks=risks,
                    total_weeks=total_weeks,
                    total_hours=total_hours,
                    total_cost=total_cost,
                )
                session.add(timeline)
                await session.flush()

                logger.info(f"Created timeline {timeline.id} for project {project_id}")
                return timeline

            except IntegrityError as e:
                logger.error(f"Constraint violation creating timeline for project {project_id}: {e}")
                raise DatabaseConstraintError(f"Cannot create timeline: project {project_id} does not exist") from e

            except Exception as e:
                logger.error(f"Error creating timeline: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create timeline for project {project_id}: {e}") from e

    async def get_by_id(self, timeline_id: str) -> Optional[TimelineDB]:
        """Get timeline by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TimelineDB).where(TimelineDB.id == timeline_id)
            )
            return result.scalar_one_or_none()

    async def get_latest_for_project(self, project_id: str) -> Optional[TimelineDB]:
        """Get the most recently generated timeline of a project."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TimelineDB)
                .where(TimelineDB.project_id == project_id)
                .order_by(TimelineDB.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_by_share_token(self, share_token: str) -> Optional[Tuple[TimelineDB, ProjectDB]]:
        """Get a shared timeline together with its project."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TimelineDB, ProjectDB)
                .join(ProjectDB, TimelineDB.project_id == ProjectDB.id)
                .where(TimelineDB.share_token == share_token)
                .limit(1)
            )
            row = result.first()
            if row is None:
                return None
            return row[0], row[1]

    async def assign_share_token(self, timeline_id: str, share_token: str) -> str:
        """Set the share token unless one is already set.

        Returns the token the timeline ends up with.

        Raises:
            DatabaseOperationError: If the timeline disappeared
        """
        async with self.db.session() as session:
            result = await session.execute(
                update(TimelineDB)
                .where(
                    and_(
                        TimelineDB.id == timeline_id,
                        TimelineDB.share_token.is_(None),
                    )
                )
                .values(share_token=share_token, updated_at=utcnow())
            )
            if result.rowcount:
                logger.info(f"Issued share token for timeline {timeline_id}")

            found = await session.execute(
                select(TimelineDB.share_token).where(TimelineDB.id == timeline_id)
            )
            current = found.scalar_one_or_none()
            if current is None:
                raise DatabaseOperationError(f"Timeline {timeline_id} not found while sharing")
            return current


# Singleton
_timeline_repository: Optional[TimelineRepository] = None


def get_timeline_repository() -> TimelineRepository:
    """Get the timeline repository singleton."""
    global _timeline_repository
    if _timeline_repository is None:
        _timeline_repository = TimelineRepository()
    return _timeline_repository
