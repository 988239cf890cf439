"""
Conversation session manager.

Maps a timeline share token to its single chat session.
"""

import logging
from typing import Awaitable, Callable, Optional

from ..database.models import ChatSessionDB
from ..database.repositories.conversations import ConversationRepository, get_conversation_repository
from .timelines import TimelineRef

logger = logging.getLogger(__name__)

TimelineLookup = Callable[[str], Awaitable[TimelineRef]]


class SessionManager:
    """Find-or-create chat sessions keyed by share token."""

    def __init__(self, conversations: Optional[ConversationRepository] = None):
        self.conversations = conversations or get_conversation_repository()

    async def get_or_create_session(
        self,
        share_token: str,
        timeline_lookup: TimelineLookup,
        client_email: Optional[str] = None,
    ) -> ChatSessionDB:
        """
        Get the session for a share token, creating it on first use.

        The token is resolved on every call so a timeline that is no longer
        shared cannot be chatted with through an old session. A supplied
        email is stored only if the session has none yet.

        Raises:
            NotFoundError: Propagated from ``timeline_lookup``
        """
        ref = await timeline_lookup(share_token)

        session = await self.conversations.get_or_create(
            share_token=share_token,
            project_id=ref.project_id,
            timeline_id=ref.timeline_id,
            client_email=client_email,
        )

        if client_email and not session.client_email:
            updated = await self.conversations.fill_client_email(session.id, client_email)
            if updated is not None:
                session = updated

        return session

    async def find_session(self, share_token: str) -> Optional[ChatSessionDB]:
        """Existing session for a token, without creating one."""
        return await self.conversations.get_by_share_token(share_token)
