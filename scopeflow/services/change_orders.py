"""
Change-order requests raised by clients from a proposal.

The share token is the client's only credential: it must match the token of
the session the proposal was made in. Owners are notified by email after
the change order is stored.
"""

import logging
import secrets
from typing import Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..database.models import ChangeOrderDB, ProposalDB
from ..database.repositories.change_orders import ChangeOrderRepository, get_change_order_repository
from ..database.repositories.conversations import ConversationRepository, get_conversation_repository
from ..database.repositories.organizations import OrganizationRepository, get_organization_repository
from ..database.repositories.projects import ProjectRepository, get_project_repository
from ..database.repositories.proposals import ProposalRepository, get_proposal_repository
from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..integrations.email import EmailSender
from .notifications import change_order_request_email, notify

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


def validate_client_email(client_email: str) -> str:
    try:
        return _email_adapter.validate_python(client_email)
    except PydanticValidationError as e:
        raise ValidationError("A valid client email is required") from e


class ChangeOrderService:
    """Turns proposals into change orders awaiting approval."""

    def __init__(
        self,
        change_orders: Optional[ChangeOrderRepository] = None,
        proposals: Optional[ProposalRepository] = None,
        conversations: Optional[ConversationRepository] = None,
        projects: Optional[ProjectRepository] = None,
        organizations: Optional[OrganizationRepository] = None,
        email_sender: Optional[EmailSender] = None,
    ):
        self.change_orders = change_orders or get_change_order_repository()
        self.proposals = proposals or get_proposal_repository()
        self.conversations = conversations or get_conversation_repository()
        self.projects = projects or get_project_repository()
        self.organizations = organizations or get_organization_repository()
        self.email_sender = email_sender

    async def request_change_order(
        self,
        proposal_id: str,
        client_email: str,
        share_token: str,
        client_notes: Optional[str] = None,
        requested_by: Optional[str] = None,
    ) -> ChangeOrderDB:
        """
        Create a ``pending_approval`` change order for a proposal.

        Raises:
            ValidationError: Invalid client email
            NotFoundError: Proposal or its session does not exist
            AccessDeniedError: Share token does not match the proposal's session
            ConflictError: A change order already exists for the proposal
        """
        client_email = validate_client_email(client_email)

        proposal = await self.proposals.get_by_id(proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal not found")

        session = await self.conversations.get_by_id(proposal.session_id)
        if session is None or not secrets.compare_digest(
            session.share_token.encode(), (share_token or "").encode()
        ):
            logger.warning(f"Change order for proposal {proposal_id} rejected: share token mismatch")
            raise AccessDeniedError("Invalid access token")

        change_order = await self.change_orders.create(
            project_id=session.project_id,
            proposal_id=proposal.id,
            client_email=client_email,
            client_notes=client_notes or None,
            requested_by=requested_by,
        )

        await self._notify_owners(change_order, proposal)
        return change_order

    async def _notify_owners(self, change_order: ChangeOrderDB, proposal: ProposalDB) -> None:
        """Schedule one email per owner; lookup failures are logged only."""
        try:
            project = await self.projects.get_by_id(change_order.project_id)
            if project is None:
                return
            owners = await self.organizations.get_owner_contacts(project.organization_id)
        except Exception as e:
            logger.error(f"Could not resolve owners for change order {change_order.id}: {e}", exc_info=True)
            return

        for owner_email, _owner_name in owners:
            if not owner_email:
                continue
            message = change_order_request_email(
                to=owner_email,
                project_name=project.name,
                summary=proposal.summary,
                changes=proposal.changes,
                delta_cost=proposal.delta_cost,
                delta_weeks=proposal.delta_weeks,
                client_email=change_order.client_email,
                client_notes=change_order.client_notes,
            )
            notify(message, f"email-change-order-{change_order.id}", sender=self.email_sender)


# Singleton
_change_order_service: Optional[ChangeOrderService] = None


def get_change_order_service() -> ChangeOrderService:
    """Get the change order service singleton."""
    global _change_order_service
    if _change_order_service is None:
        _change_order_service = ChangeOrderService()
    return _change_order_service
