"""
Change order repository.

A change order is raised by a client from a proposal and resolved by an
organization owner. At most one change order exists per proposal; the
``uq_change_order_proposal`` constraint enforces it.
"""

import logging
from typing import Optional, List

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import (
    ChangeOrderDB,
    ChangeOrderStatusEnum,
    ProposalDB,
    ProposalStatusEnum,
    utcnow,
)
from ..exceptions import DatabaseOperationError
from ...errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class ChangeOrderRepository:
    """Repository for change order operations."""

    def __init__(self):
        self.db = get_database()

    async def create(
        self,
        project_id: str,
        proposal_id: str,
        client_email: str,
        client_notes: Optional[str] = None,
        requested_by: Optional[str] = None,
    ) -> ChangeOrderDB:
        """Create a change order awaiting approval.

        Raises:
            ConflictError: If a change order already exists for the proposal
            DatabaseOperationError: If the insert fails
        """
        try:
            async with self.db.session() as session:
                change_order = ChangeOrderDB(
                    project_id=project_id,
                    proposal_id=proposal_id,
                    client_email=client_email,
                    client_notes=client_notes,
                    requested_by=requested_by,
                    status=ChangeOrderStatusEnum.PENDING_APPROVAL.value,
                )
                session.add(change_order)
                await session.flush()

            logger.info(f"Created change order {change_order.id} for proposal {proposal_id}")
            return change_order

        except IntegrityError as e:
            logger.warning(f"Duplicate change order for proposal {proposal_id}: {e}")
            raise ConflictError("A change order for this proposal already exists") from e
        except Exception as e:
            logger.error(f"Error creating change order: {e}", exc_info=True)
            raise DatabaseOperationError(f"Failed to create change order for proposal {proposal_id}: {e}") from e

    async def get_by_id(self, change_order_id: str) -> Optional[ChangeOrderDB]:
        """Get change order by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ChangeOrderDB).where(ChangeOrderDB.id == change_order_id)
            )
            return result.scalar_one_or_none()

    async def get_by_proposal(self, proposal_id: str) -> Optional[ChangeOrderDB]:
        """Get the change order raised from a proposal, if any."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ChangeOrderDB).where(ChangeOrderDB.proposal_id == proposal_id)
            )
            return result.scalar_one_or_none()

    async def list_for_project(self, project_id: str, status: Optional[str] = None) -> List[ChangeOrderDB]:
        """Get change orders of a project, newest first."""
        async with self.db.session() as session:
            query = select(ChangeOrderDB).where(ChangeOrderDB.project_id == project_id)
            if status:
                query = query.where(ChangeOrderDB.status == status)
            result = await session.execute(query.order_by(ChangeOrderDB.created_at.desc()))
            return list(result.scalars().all())

    async def resolve(
        self,
        change_order_id: str,
        approved: bool,
        resolved_by: str,
        note: Optional[str] = None,
    ) -> ChangeOrderDB:
        """Approve or reject a pending change order and its proposal.

        Both rows change in one transaction. Only ``pending_approval``
        orders can be resolved.

        Raises:
            NotFoundError: If the change order does not exist
            ConflictError: If the change order was already resolved
        """
        if approved:
            order_status = ChangeOrderStatusEnum.APPROVED.value
            proposal_status = ProposalStatusEnum.APPROVED.value
        else:
            order_status = ChangeOrderStatusEnum.REJECTED.value
            proposal_status = ProposalStatusEnum.REJECTED.value

        async with self.db.session() as session:
            now = utcnow()
            result = await session.execute(
                update(ChangeOrderDB)
                .where(
                    and_(
                        ChangeOrderDB.id == change_order_id,
                        ChangeOrderDB.status == ChangeOrderStatusEnum.PENDING_APPROVAL.value,
                    )
                )
                .values(
                    status=order_status,
                    approved_by=resolved_by,
                    resolved_at=now,
                    resolution_note=note,
                    updated_at=now,
                )
            )

            found = await session.execute(
                select(ChangeOrderDB).where(ChangeOrderDB.id == change_order_id)
            )
            change_order = found.scalar_one_or_none()

            if change_order is None:
                raise NotFoundError("Change order not found")
            if result.rowcount == 0:
                raise ConflictError(f"Change order is already {change_order.status}")

            await session.execute(
                update(ProposalDB)
                .where(ProposalDB.id == change_order.proposal_id)
                .values(status=proposal_status, updated_at=now)
            )

            logger.info(f"Change order {change_order_id} {order_status} by {resolved_by}")
            return change_order


# Singleton
_change_order_repository: Optional[ChangeOrderRepository] = None


def get_change_order_repository() -> ChangeOrderRepository:
    """Get the change order repository singleton."""
    global _change_order_repository
    if _change_order_repository is None:
        _change_order_repository = ChangeOrderRepository()
    return _change_order_repository
