"""
Proposal store reads and the baseline-vs-proposed comparison.

Proposed totals are always ``base + delta`` against the stored aggregates of
the proposal's base timeline, never recomputed from phases.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..database.models import ProposalDB, TimelineDB
from ..database.repositories.conversations import ConversationRepository, get_conversation_repository
from ..database.repositories.proposals import ProposalRepository, get_proposal_repository
from ..database.repositories.timelines import TimelineRepository, get_timeline_repository
from ..errors import NotFoundError
from ..utils.formatting import format_cost_delta, format_money, format_weeks, format_weeks_delta
from .timelines import TimelineService, get_timeline_service

logger = logging.getLogger(__name__)


def serialize_proposal(proposal: ProposalDB) -> Dict[str, Any]:
    """Proposal summary as returned to clients."""
    return {
        "id": proposal.id,
        "summary": proposal.summary,
        "deltaCost": float(proposal.delta_cost),
        "deltaWeeks": float(proposal.delta_weeks),
        "proposalData": proposal.proposal_data,
        "status": proposal.status,
        "createdAt": proposal.created_at,
    }


@dataclass
class ProposalComparison:
    proposal_id: str
    base_timeline_id: str
    summary: str
    status: str
    baseline_weeks: Decimal
    baseline_cost: Decimal
    delta_weeks: Decimal
    delta_cost: Decimal
    changes: List[str] = field(default_factory=list)
    reasoning: str = ""

    @property
    def proposed_weeks(self) -> Decimal:
        return self.baseline_weeks + self.delta_weeks

    @property
    def proposed_cost(self) -> Decimal:
        return self.baseline_cost + self.delta_cost

    @classmethod
    def build(cls, proposal: ProposalDB, base: TimelineDB) -> "ProposalComparison":
        data = proposal.proposal_data or {}
        return cls(
            proposal_id=proposal.id,
            base_timeline_id=base.id,
            summary=proposal.summary,
            status=proposal.status,
            baseline_weeks=Decimal(base.total_weeks),
            baseline_cost=Decimal(base.total_cost),
            delta_weeks=Decimal(proposal.delta_weeks),
            delta_cost=Decimal(proposal.delta_cost),
            changes=proposal.changes,
            reasoning=data.get("reasoning", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "baseTimelineId": self.base_timeline_id,
            "summary": self.summary,
            "status": self.status,
            "changes": self.changes,
            "reasoning": self.reasoning,
            "baseline": {
                "totalWeeks": float(self.baseline_weeks),
                "totalCost": float(self.baseline_cost),
                "weeksDisplay": format_weeks(self.baseline_weeks),
                "costDisplay": format_money(self.baseline_cost),
            },
            "proposed": {
                "totalWeeks": float(self.proposed_weeks),
                "totalCost": float(self.proposed_cost),
                "weeksDisplay": format_weeks(self.proposed_weeks),
                "costDisplay": format_money(self.proposed_cost),
            },
            "delta": {
                "weeks": float(self.delta_weeks),
                "cost": float(self.delta_cost),
                "weeksDisplay": format_weeks_delta(self.delta_weeks),
                "costDisplay": format_cost_delta(self.delta_cost),
            },
        }


class ProposalService:
    """Read side of the proposal store."""

    def __init__(
        self,
        proposals: Optional[ProposalRepository] = None,
        conversations: Optional[ConversationRepository] = None,
        timelines: Optional[TimelineRepository] = None,
        timeline_service: Optional[TimelineService] = None,
    ):
        self.proposals = proposals or get_proposal_repository()
        self.conversations = conversations or get_conversation_repository()
        self.timelines = timelines or get_timeline_repository()
        self.timeline_service = timeline_service or get_timeline_service()

    async def list_proposals(self, session_id: str) -> List[ProposalDB]:
        """All proposals of a session, newest first."""
        return await self.proposals.list_for_session(session_id)

    async def get_proposal(self, session_id: str, proposal_id: str) -> ProposalDB:
        """
        Raises:
            NotFoundError: No such proposal in this session
        """
        proposal = await self.proposals.get_for_session(session_id, proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal not found")
        return proposal

    async def compare(self, share_token: str, proposal_id: str) -> ProposalComparison:
        """
        Baseline vs proposed totals for a proposal reachable through a share token.

        Raises:
            NotFoundError: Unknown token, session, proposal or base timeline
            AccessDeniedError: Timeline not approved
        """
        await self.timeline_service.load_shared(share_token)

        session = await self.conversations.get_by_share_token(share_token)
        if session is None:
            raise NotFoundError("Chat session not found")

        proposal = await self.get_proposal(session.id, proposal_id)

        base = await self.timelines.get_by_id(proposal.base_timeline_id)
        if base is None:
            raise NotFoundError("Base timeline not found")

        return ProposalComparison.build(proposal, base)


# Singleton
_proposal_service: Optional[ProposalService] = None


def get_proposal_service() -> ProposalService:
    """Get the proposal service singleton."""
    global _proposal_service
    if _proposal_service is None:
        _proposal_service = ProposalService()
    return _proposal_service
