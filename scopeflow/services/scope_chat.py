"""
Scope chat: one client turn against a shared timeline.

Each turn persists the user message, asks the completion service for a
reply with the baseline and recent history as context, persists the reply,
and then tries to turn an embedded ``scope_change`` object into a draft
proposal. Proposal extraction is best-effort and never fails the turn.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from config import settings
from ..ai.completion import CompletionClient, get_completion_client
from ..ai.prompts import PromptTemplates
from ..ai.structured_output import extract_scope_change
from ..database.models import ChatMessageDB, MessageRoleEnum, ProposalDB, ProjectDB, TimelineDB
from ..database.repositories.conversations import ConversationRepository, get_conversation_repository
from ..database.repositories.organizations import OrganizationRepository, get_organization_repository
from ..database.repositories.proposals import ProposalRepository, get_proposal_repository
from ..errors import ValidationError
from .chat_sessions import SessionManager
from .org_context import load_pricing
from .proposals import serialize_proposal
from .timelines import TimelineRef, TimelineService, get_timeline_service

logger = logging.getLogger(__name__)


@dataclass
class ChatTurn:
    assistant_text: str
    proposal: Optional[ProposalDB]
    session_id: str


def build_context(history: List[ChatMessageDB], current_message: str) -> List[Dict[str, str]]:
    """
    Turn stored history into completion messages.

    ``history`` is newest-first as stored. The result is oldest-first, holds
    only user/assistant turns, starts with a user turn, and ends with the
    current message.
    """
    messages = [
        {"role": message.role, "content": message.content}
        for message in reversed(history)
        if message.role in (MessageRoleEnum.USER.value, MessageRoleEnum.ASSISTANT.value)
    ]

    while messages and messages[0]["role"] == MessageRoleEnum.ASSISTANT.value:
        messages.pop(0)

    if not messages or messages[-1]["role"] != MessageRoleEnum.USER.value or messages[-1]["content"] != current_message:
        messages.append({"role": MessageRoleEnum.USER.value, "content": current_message})

    return messages


class ScopeChatService:
    """Client chat turns and history for a shared timeline."""

    def __init__(
        self,
        completion: Optional[CompletionClient] = None,
        conversations: Optional[ConversationRepository] = None,
        proposals: Optional[ProposalRepository] = None,
        organizations: Optional[OrganizationRepository] = None,
        timeline_service: Optional[TimelineService] = None,
        session_manager: Optional[SessionManager] = None,
    ):
        self._completion = completion
        self.conversations = conversations or get_conversation_repository()
        self.proposals = proposals or get_proposal_repository()
        self.organizations = organizations or get_organization_repository()
        self.timeline_service = timeline_service or get_timeline_service()
        self.session_manager = session_manager or SessionManager(self.conversations)

    @property
    def completion(self) -> CompletionClient:
        if self._completion is None:
            self._completion = get_completion_client()
        return self._completion

    @staticmethod
    def validate_message(message: Optional[str]) -> str:
        if message is None or not message.strip():
            raise ValidationError("Message cannot be empty")
        if len(message) > settings.chat_message_max_length:
            raise ValidationError(
                f"Message is too long (max {settings.chat_message_max_length} characters)"
            )
        return message

    async def converse(
        self,
        share_token: str,
        message: str,
        client_email: Optional[str] = None,
    ) -> ChatTurn:
        """
        Run one chat turn.

        Raises:
            ValidationError: Empty or oversized message
            NotFoundError / AccessDeniedError: Token does not resolve to a shared timeline
            Completion*Error: The completion call failed; the user message
                stays persisted and no assistant message is written
        """
        message = self.validate_message(message)

        timeline, project = await self.timeline_service.load_shared(share_token)

        async def lookup(_token: str) -> TimelineRef:
            return TimelineRef(project_id=project.id, timeline_id=timeline.id)

        session = await self.session_manager.get_or_create_session(
            share_token, lookup, client_email=client_email
        )

        await self.conversations.add_message(session.id, MessageRoleEnum.USER.value, message)

        history = await self.conversations.get_recent_messages(
            session.id, limit=settings.chat_history_limit
        )
        context = build_context(history, message)

        system_prompt = await self._system_prompt(project, timeline)

        assistant_text = await self.completion.complete(system_prompt, context)

        await self.conversations.add_message(session.id, MessageRoleEnum.ASSISTANT.value, assistant_text)

        proposal = await self._extract_proposal(session.id, timeline.id, assistant_text)

        return ChatTurn(assistant_text=assistant_text, proposal=proposal, session_id=session.id)

    async def _system_prompt(self, project: ProjectDB, timeline: TimelineDB) -> str:
        hourly_rate, hours_per_week = await load_pricing(self.organizations, project.organization_id)
        return PromptTemplates.scope_chat_system_prompt(
            project={
                "name": project.name,
                "project_type": project.project_type,
                "budget": project.budget,
            },
            timeline=timeline.to_baseline_dict(),
            hourly_rate=hourly_rate,
            hours_per_week=hours_per_week,
        )

    async def _extract_proposal(
        self,
        session_id: str,
        base_timeline_id: str,
        assistant_text: str,
    ) -> Optional[ProposalDB]:
        payload = extract_scope_change(assistant_text)
        if payload is None:
            return None

        try:
            return await self.proposals.create(
                session_id=session_id,
                base_timeline_id=base_timeline_id,
                proposal_data=payload.to_document(),
                delta_cost=Decimal(str(payload.delta_cost)),
                delta_weeks=Decimal(str(payload.delta_weeks)),
                summary=payload.summary,
            )
        except Exception as e:
            logger.error(f"Dropping proposal for session {session_id}: {e}", exc_info=True)
            return None

    async def get_history(self, share_token: str) -> Dict[str, Any]:
        """
        Chat history for a share token, oldest message first.

        A token with no session yet returns empty lists.
        """
        session = await self.session_manager.find_session(share_token)
        if session is None:
            return {"sessionId": None, "session": None, "messages": [], "proposals": []}

        messages = await self.conversations.get_messages(session.id)
        proposals = await self.proposals.list_for_session(session.id)

        return {
            "sessionId": session.id,
            "session": {"clientEmail": session.client_email},
            "messages": [
                {
                    "id": message.id,
                    "role": message.role,
                    "content": message.content,
                    "createdAt": message.created_at,
                }
                for message in reversed(messages)
            ],
            "proposals": [serialize_proposal(proposal) for proposal in proposals],
        }


# Singleton
_scope_chat_service: Optional[ScopeChatService] = None


def get_scope_chat_service() -> ScopeChatService:
    """Get the scope chat service singleton."""
    global _scope_chat_service
    if _scope_chat_service is None:
        _scope_chat_service = ScopeChatService()
    return _scope_chat_service
