"""
Public routes for clients holding a timeline share token.
"""

import logging

from fastapi import APIRouter, Depends

from ..models.api_validation import ChatRequest, ChangeOrderRequest
from ..services.change_orders import ChangeOrderService, get_change_order_service
from ..services.proposals import ProposalService, get_proposal_service, serialize_proposal
from ..services.scope_chat import ScopeChatService, get_scope_chat_service
from ..services.timelines import TimelineService, get_timeline_service
from .dependencies import limit_chat_requests

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["client"])


@router.get("/timelines/{share_token}")
async def get_shared_timeline(
    share_token: str,
    service: TimelineService = Depends(get_timeline_service),
):
    """Shared timeline with client-safe project fields."""
    return await service.get_public_timeline(share_token)


@router.post("/timelines/{share_token}/chat", dependencies=[Depends(limit_chat_requests)])
async def post_chat_message(
    share_token: str,
    body: ChatRequest,
    service: ScopeChatService = Depends(get_scope_chat_service),
):
    """One scope chat turn."""
    turn = await service.converse(
        share_token,
        body.message,
        client_email=body.client_email,
    )
    return {
        "message": turn.assistant_text,
        "proposal": serialize_proposal(turn.proposal) if turn.proposal else None,
        "sessionId": turn.session_id,
    }


@router.get("/timelines/{share_token}/chat")
async def get_chat_history(
    share_token: str,
    service: ScopeChatService = Depends(get_scope_chat_service),
):
    """Chat history, oldest message first, and proposals, newest first."""
    return await service.get_history(share_token)


@router.get("/timelines/{share_token}/proposals/{proposal_id}/comparison")
async def get_proposal_comparison(
    share_token: str,
    proposal_id: str,
    service: ProposalService = Depends(get_proposal_service),
):
    comparison = await service.compare(share_token, proposal_id)
    return comparison.to_dict()


@router.post("/change-orders")
async def create_change_order(
    body: ChangeOrderRequest,
    service: ChangeOrderService = Depends(get_change_order_service),
):
    """Client request to turn a proposal into a change order."""
    change_order = await service.request_change_order(
        proposal_id=body.proposal_id,
        client_email=body.client_email,
        share_token=body.share_token,
        client_notes=body.client_notes,
    )
    return {
        "id": change_order.id,
        "status": change_order.status,
        "createdAt": change_order.created_at,
        "message": "Change order request submitted successfully. The team will review your request shortly.",
    }
