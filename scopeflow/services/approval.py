"""
Organization approval path.

Members approve a project's timeline and share it with the client; owners
approve or reject the change orders clients raise against it.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional

from config import settings
from ..auth import Identity
from ..database.models import ChangeOrderDB, ProjectStatusEnum, ProjectDB
from ..database.repositories.change_orders import ChangeOrderRepository, get_change_order_repository
from ..database.repositories.organizations import OrganizationRepository, get_organization_repository
from ..database.repositories.projects import ProjectRepository, get_project_repository
from ..database.repositories.timelines import TimelineRepository, get_timeline_repository
from ..errors import AuthenticationError, ConflictError, NotFoundError
from ..integrations.email import EmailSender
from .notifications import notify, timeline_shared_email
from .org_context import load_member_project

logger = logging.getLogger(__name__)


def generate_share_token() -> str:
    return secrets.token_urlsafe(24)


@dataclass
class ShareResult:
    share_token: str
    share_url: str
    is_new_share: bool


class ApprovalService:
    """Member and owner actions on projects, timelines and change orders."""

    def __init__(
        self,
        projects: Optional[ProjectRepository] = None,
        timelines: Optional[TimelineRepository] = None,
        change_orders: Optional[ChangeOrderRepository] = None,
        organizations: Optional[OrganizationRepository] = None,
        email_sender: Optional[EmailSender] = None,
    ):
        self.projects = projects or get_project_repository()
        self.timelines = timelines or get_timeline_repository()
        self.change_orders = change_orders or get_change_order_repository()
        self.organizations = organizations or get_organization_repository()
        self.email_sender = email_sender

    async def approve_timeline(self, project_id: str, identity: Identity) -> ProjectDB:
        """
        Mark the project's timeline as approved.

        Raises:
            NotFoundError: Project or timeline missing
            AccessDeniedError: Caller is not a member
        """
        project = await load_member_project(self.projects, project_id, identity)

        timeline = await self.timelines.get_latest_for_project(project.id)
        if timeline is None:
            raise NotFoundError("No timeline found for this project")

        await self.projects.update_status(project.id, ProjectStatusEnum.APPROVED)
        project.status = ProjectStatusEnum.APPROVED.value
        logger.info(f"Timeline {timeline.id} approved by {identity.user_id}")
        return project

    async def share_timeline(
        self,
        project_id: str,
        identity: Identity,
        base_url: Optional[str] = None,
    ) -> ShareResult:
        """
        Issue (or return the existing) share token of the latest timeline.

        The client is emailed only the first time a timeline is shared.

        Raises:
            ConflictError: Project is not approved
            NotFoundError: No timeline
        """
        project = await load_member_project(self.projects, project_id, identity)

        if project.status != ProjectStatusEnum.APPROVED.value:
            raise ConflictError("Timeline must be approved before sharing")

        timeline = await self.timelines.get_latest_for_project(project.id)
        if timeline is None:
            raise NotFoundError("No timeline found for this project")

        is_new_share = timeline.share_token is None
        share_token = timeline.share_token
        if is_new_share:
            candidate = generate_share_token()
            share_token = await self.timelines.assign_share_token(timeline.id, candidate)
            # A concurrent share may have won the race
            is_new_share = share_token == candidate

        share_url = f"{(base_url or settings.public_base_url).rstrip('/')}/timeline/{share_token}"

        if is_new_share and project.client_email:
            organization = await self.organizations.get_by_id(project.organization_id)
            message = timeline_shared_email(
                to=project.client_email,
                client_name=project.client_name,
                project_name=project.name,
                timeline_url=share_url,
                agency_name=organization.name if organization else "ScopeFlow",
            )
            notify(message, f"email-timeline-shared-{timeline.id}", sender=self.email_sender)

        return ShareResult(share_token=share_token, share_url=share_url, is_new_share=is_new_share)

    async def list_change_orders(
        self,
        project_id: str,
        identity: Identity,
        status: Optional[str] = None,
    ) -> List[ChangeOrderDB]:
        project = await load_member_project(self.projects, project_id, identity)
        return await self.change_orders.list_for_project(project.id, status=status)

    async def resolve_change_order(
        self,
        change_order_id: str,
        identity: Identity,
        approve: bool,
        note: Optional[str] = None,
    ) -> ChangeOrderDB:
        """
        Approve or reject a pending change order.

        Raises:
            NotFoundError: Change order missing
            AccessDeniedError: Caller is not an owner of the project's organization
            ConflictError: Change order already resolved
        """
        if identity is None:
            raise AuthenticationError()

        change_order = await self.change_orders.get_by_id(change_order_id)
        if change_order is None:
            raise NotFoundError("Change order not found")

        await load_member_project(self.projects, change_order.project_id, identity, owner=True)

        return await self.change_orders.resolve(
            change_order.id,
            approved=approve,
            resolved_by=identity.user_id,
            note=note,
        )


# Singleton
_approval_service: Optional[ApprovalService] = None


def get_approval_service() -> ApprovalService:
    """Get the approval service singleton."""
    global _approval_service
    if _approval_service is None:
        _approval_service = ApprovalService()
    return _approval_service
