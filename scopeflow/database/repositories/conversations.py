"""
Conversation repository for client chat history storage.

Stores:
- One chat session per shared timeline (keyed by share token)
- Individual messages, append-only
- The client email captured during the conversation
"""

import logging
from typing import Optional, List

from sqlalchemy import select, update, func, and_
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import ChatSessionDB, ChatMessageDB, MessageRoleEnum, utcnow
from ..exceptions import DatabaseOperationError

logger = logging.getLogger(__name__)


class ConversationRepository:
    """Repository for chat session and message operations."""

    def __init__(self):
        self.db = get_database()

    # ==================== SESSIONS ====================

    async def get_by_share_token(self, share_token: str) -> Optional[ChatSessionDB]:
        """Get the chat session for a share token."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ChatSessionDB).where(ChatSessionDB.share_token == share_token)
            )
            return result.scalar_one_or_none()

    async def get_by_id(self, session_id: str) -> Optional[ChatSessionDB]:
        """Get chat session by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ChatSessionDB).where(ChatSessionDB.id == session_id)
            )
            return result.scalar_one_or_none()

    async def get_or_create(
        self,
        share_token: str,
        project_id: str,
        timeline_id: str,
        client_email: Optional[str] = None,
    ) -> ChatSessionDB:
        """Find the session for a share token, creating it on first use.

        The unique constraint on ``share_token`` decides concurrent creators:
        the loser's insert fails and it reads the winner's row instead.

        Raises:
            DatabaseOperationError: If the session can neither be created nor read
        """
        existing = await self.get_by_share_token(share_token)
        if existing:
            return existing

        try:
            async with self.db.session() as session:
                chat_session = ChatSessionDB(
                    share_token=share_token,
                    project_id=project_id,
                    timeline_id=timeline_id,
                    client_email=client_email,
                )
                session.add(chat_session)
                await session.flush()

            logger.info(f"Created chat session {chat_session.id} for timeline {timeline_id}")
            return chat_session

        except IntegrityError:
            logger.info(f"Chat session for timeline {timeline_id} created concurrently, reusing it")
            existing = await self.get_by_share_token(share_token)
            if existing is None:
                raise DatabaseOperationError(
                    f"Chat session for timeline {timeline_id} could not be created or found"
                )
            return existing

        except Exception as e:
            logger.error(f"Error creating chat session: {e}", exc_info=True)
            raise DatabaseOperationError(f"Failed to create chat session: {e}") from e

    async def fill_client_email(self, session_id: str, client_email: str) -> Optional[ChatSessionDB]:
        """Store the client email only if none is stored yet.

        Returns the session as it is after the update.
        """
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    update(ChatSessionDB)
                    .where(
                        and_(
                            ChatSessionDB.id == session_id,
                            ChatSessionDB.client_email.is_(None),
                        )
                    )
                    .values(client_email=client_email, updated_at=utcnow())
                )
                if result.rowcount:
                    logger.info(f"Captured client email for chat session {session_id}")

                result = await session.execute(
                    select(ChatSessionDB).where(ChatSessionDB.id == session_id)
                )
                return result.scalar_one_or_none()

            except Exception as e:
                logger.error(f"Error updating chat session email: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update chat session {session_id}: {e}") from e

    # ==================== MESSAGES ====================

    async def add_message(self, session_id: str, role: str, content: str) -> ChatMessageDB:
        """Append a message to a session.

        Raises:
            DatabaseOperationError: If the insert fails
        """
        if role not in {r.value for r in MessageRoleEnum}:
            raise ValueError(f"Invalid message role: {role}")

        async with self.db.session() as session:
            try:
                message = ChatMessageDB(
                    session_id=session_id,
                    role=role,
                    content=content,
                )
                session.add(message)
                await session.flush()

                await session.execute(
                    update(ChatSessionDB)
                    .where(ChatSessionDB.id == session_id)
                    .values(updated_at=utcnow())
                )

                return message

            except Exception as e:
                logger.error(f"Error adding message to chat session: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to add message to chat session {session_id}: {e}") from e

    async def get_recent_messages(self, session_id: str, limit: int = 20) -> List[ChatMessageDB]:
        """Get the most recent messages, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ChatMessageDB)
                .where(ChatMessageDB.session_id == session_id)
                .order_by(ChatMessageDB.created_at.desc(), ChatMessageDB.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_messages(self, session_id: str) -> List[ChatMessageDB]:
        """Get the full transcript, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ChatMessageDB)
                .where(ChatMessageDB.session_id == session_id)
                .order_by(ChatMessageDB.created_at.desc(), ChatMessageDB.id.desc())
            )
            return list(result.scalars().all())

    async def count_messages(self, session_id: str) -> int:
        """Count messages in a session."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(ChatMessageDB.id))
                .where(ChatMessageDB.session_id == session_id)
            )
            return result.scalar() or 0


# Singleton
_conversation_repository: Optional[ConversationRepository] = None


def get_conversation_repository() -> ConversationRepository:
    """Get the conversation repository singleton."""
    global _conversation_repository
    if _conversation_repository is None:
        _conversation_repository = ConversationRepository()
    return _conversation_repository
