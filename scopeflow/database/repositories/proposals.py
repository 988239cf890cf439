"""
Proposal repository for scope-change deltas.

Proposals are created only from validated assistant output and are
read back newest-first per chat session.
"""

import logging
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import select, and_

from ..connection import get_database
from ..models import ProposalDB, ProposalStatusEnum
from ..exceptions import DatabaseOperationError

logger = logging.getLogger(__name__)


class ProposalRepository:
    """Repository for proposal operations."""

    def __init__(self):
        self.db = get_database()

    async def create(
        self,
        session_id: str,
        base_timeline_id: str,
        proposal_data: Dict[str, Any],
        delta_cost: Decimal,
        delta_weeks: Decimal,
        summary: str,
    ) -> ProposalDB:
        """Create a draft proposal.

        Raises:
            DatabaseOperationError: If the insert fails
        """
        async with self.db.session() as session:
            try:
                proposal = ProposalDB(
                    session_id=session_id,
                    base_timeline_id=base_timeline_id,
                    proposal_data=proposal_data,
                    delta_cost=delta_cost,
                    delta_weeks=delta_weeks,
                    summary=summary,
                    status=ProposalStatusEnum.DRAFT.value,
                )
                session.add(proposal)
                await session.flush()

                logger.info(
                    f"Created proposal {proposal.id} for session {session_id} "
                    f"(cost {delta_cost}, weeks {delta_weeks})"
                )
                return proposal

            except Exception as e:
                logger.error(f"Error creating proposal: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create proposal for session {session_id}: {e}") from e

    async def get_by_id(self, proposal_id: str) -> Optional[ProposalDB]:
        """Get proposal by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProposalDB).where(ProposalDB.id == proposal_id)
            )
            return result.scalar_one_or_none()

    async def get_for_session(self, session_id: str, proposal_id: str) -> Optional[ProposalDB]:
        """Get a proposal only if it belongs to the given session."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProposalDB).where(
                    and_(
                        ProposalDB.id == proposal_id,
                        ProposalDB.session_id == session_id,
                    )
                )
            )
            return result.scalar_one_or_none()

    async def list_for_session(self, session_id: str) -> List[ProposalDB]:
        """Get all proposals of a session, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProposalDB)
                .where(ProposalDB.session_id == session_id)
                .order_by(ProposalDB.created_at.desc())
            )
            return list(result.scalars().all())


# Singleton
_proposal_repository: Optional[ProposalRepository] = None


def get_proposal_repository() -> ProposalRepository:
    """Get the proposal repository singleton."""
    global _proposal_repository
    if _proposal_repository is None:
        _proposal_repository = ProposalRepository()
    return _proposal_repository
