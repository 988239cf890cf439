"""
Timeline service: generation for members, share-token resolution for
anonymous clients.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from ..ai.timeline_generator import TimelineGenerator, get_timeline_generator
from ..auth import Identity
from ..database.models import ProjectDB, ProjectStatusEnum, TimelineDB
from ..database.repositories.organizations import OrganizationRepository, get_organization_repository
from ..database.repositories.projects import ProjectRepository, get_project_repository
from ..database.repositories.timelines import TimelineRepository, get_timeline_repository
from ..errors import AccessDeniedError, NotFoundError, ValidationError
from .org_context import effective_pricing, load_member_project

logger = logging.getLogger(__name__)

# Project statuses under which a shared timeline is visible to its client
SHARED_STATUSES = frozenset({
    ProjectStatusEnum.APPROVED.value,
    ProjectStatusEnum.IN_PROGRESS.value,
})


@dataclass(frozen=True)
class TimelineRef:
    project_id: str
    timeline_id: str


class TimelineService:
    """Baseline timelines and their public share tokens."""

    def __init__(
        self,
        timelines: Optional[TimelineRepository] = None,
        projects: Optional[ProjectRepository] = None,
        organizations: Optional[OrganizationRepository] = None,
        generator: Optional[TimelineGenerator] = None,
    ):
        self.timelines = timelines or get_timeline_repository()
        self.projects = projects or get_project_repository()
        self.organizations = organizations or get_organization_repository()
        self._generator = generator

    @property
    def generator(self) -> TimelineGenerator:
        if self._generator is None:
            self._generator = get_timeline_generator()
        return self._generator

    # ==================== PUBLIC (SHARE TOKEN) ====================

    async def load_shared(self, share_token: str) -> Tuple[TimelineDB, ProjectDB]:
        """
        Load a shared timeline and its project.

        Raises:
            NotFoundError: No timeline carries this token
            AccessDeniedError: The project is not approved
        """
        found = await self.timelines.get_by_share_token(share_token)
        if found is None:
            raise NotFoundError("Timeline not found or not shared")

        timeline, project = found
        if project.status not in SHARED_STATUSES:
            raise AccessDeniedError("Timeline is not yet approved")
        return timeline, project

    async def resolve_share_token(self, share_token: str) -> TimelineRef:
        timeline, project = await self.load_shared(share_token)
        return TimelineRef(project_id=project.id, timeline_id=timeline.id)

    async def get_public_timeline(self, share_token: str) -> Dict[str, Any]:
        """Timeline and client-safe project fields for the share page."""
        timeline, project = await self.load_shared(share_token)
        return {
            "timeline": {
                "id": timeline.id,
                **timeline.to_baseline_dict(),
                "createdAt": timeline.created_at,
            },
            "project": {
                "name": project.name,
                "clientName": project.client_name,
                "projectType": project.project_type,
                "projectBrief": project.project_brief,
            },
        }

    # ==================== MEMBERS ====================

    async def generate(self, project_id: str, identity: Identity) -> TimelineDB:
        """
        Generate and store a new timeline, moving the project to ``scoping``.

        Raises:
            ValidationError: Project has no brief
            Completion*Error: Generation failed
        """
        project = await load_member_project(self.projects, project_id, identity)

        if not project.project_brief:
            raise ValidationError("Project brief is required to generate a timeline")

        org_settings = await self.organizations.get_settings(project.organization_id)
        hourly_rate, hours_per_week = effective_pricing(org_settings)
        custom_prompts = (org_settings.custom_ai_prompts if org_settings else None) or {}

        logger.info(f"Generating timeline for project {project_id}")
        generated = await self.generator.generate(
            project_brief=project.project_brief,
            project_type=project.project_type,
            client_name=project.client_name,
            hourly_rate=hourly_rate,
            hours_per_week=hours_per_week,
            form_responses=project.form_responses,
            custom_instructions=custom_prompts.get("timeline_generation", ""),
        )

        timeline = await self.timelines.create(
            project_id=project.id,
            phases=[phase.model_dump() for phase in generated.phases],
            total_weeks=Decimal(str(generated.total_weeks)),
            total_hours=Decimal(str(generated.total_hours)),
            total_cost=Decimal(str(generated.total_cost)),
            milestones=generated.milestones,
            risks=generated.risks,
        )
        await self.projects.update_status(project.id, ProjectStatusEnum.SCOPING)
        return timeline


# Singleton
_timeline_service: Optional[TimelineService] = None


def get_timeline_service() -> TimelineService:
    """Get the timeline service singleton."""
    global _timeline_service
    if _timeline_service is None:
        _timeline_service = TimelineService()
    return _timeline_service
