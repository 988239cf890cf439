"""
Pytest configuration and shared fixtures.

``database`` swaps the process-wide database for an in-memory SQLite one
and clears every repository/service singleton so they bind to it.
``seeded`` adds an organization with an owner and a member, an approved
project and its shared timeline.
"""

from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

import scopeflow.ai.completion as completion_module
import scopeflow.ai.form_generator as form_generator_module
import scopeflow.ai.timeline_generator as timeline_generator_module
import scopeflow.auth as auth_module
import scopeflow.database.connection as connection_module
import scopeflow.database.repositories.change_orders as change_order_repo_module
import scopeflow.database.repositories.conversations as conversation_repo_module
import scopeflow.database.repositories.forms as form_repo_module
import scopeflow.database.repositories.organizations as organization_repo_module
import scopeflow.database.repositories.projects as project_repo_module
import scopeflow.database.repositories.proposals as proposal_repo_module
import scopeflow.database.repositories.timelines as timeline_repo_module
import scopeflow.integrations.email as email_module
import scopeflow.services.approval as approval_module
import scopeflow.services.change_orders as change_order_service_module
import scopeflow.services.intake_forms as intake_form_module
import scopeflow.services.projects as project_service_module
import scopeflow.services.proposals as proposal_service_module
import scopeflow.services.rate_limiter as rate_limiter_module
import scopeflow.services.scope_chat as scope_chat_module
import scopeflow.services.timelines as timeline_service_module
from scopeflow.database.connection import Database
from scopeflow.database.models import (
    AuthSessionDB,
    MemberRoleEnum,
    OrganizationDB,
    OrganizationMemberDB,
    OrganizationSettingsDB,
    ProjectDB,
    ProjectStatusEnum,
    TimelineDB,
    UserDB,
    utcnow,
)
from scopeflow.utils.background_tasks import drain_background_tasks

SHARE_TOKEN = "share-token-abc123"
OWNER_TOKEN = "owner-bearer-token"
MEMBER_TOKEN = "member-bearer-token"
OUTSIDER_TOKEN = "outsider-bearer-token"

SINGLETONS = [
    (completion_module, "_completion_client"),
    (form_generator_module, "_form_generator"),
    (timeline_generator_module, "_timeline_generator"),
    (auth_module, "_identity_provider"),
    (change_order_repo_module, "_change_order_repository"),
    (conversation_repo_module, "_conversation_repository"),
    (form_repo_module, "_form_repository"),
    (organization_repo_module, "_organization_repository"),
    (project_repo_module, "_project_repository"),
    (proposal_repo_module, "_proposal_repository"),
    (timeline_repo_module, "_timeline_repository"),
    (email_module, "_email_sender"),
    (approval_module, "_approval_service"),
    (change_order_service_module, "_change_order_service"),
    (intake_form_module, "_intake_form_service"),
    (project_service_module, "_project_service"),
    (proposal_service_module, "_proposal_service"),
    (rate_limiter_module, "_rate_limiter"),
    (scope_chat_module, "_scope_chat_service"),
    (timeline_service_module, "_timeline_service"),
]


@pytest.fixture
async def database(monkeypatch):
    """In-memory SQLite database installed as the global database."""
    db = Database("sqlite+aiosqlite:///:memory:")
    assert await db.initialize()

    monkeypatch.setattr(connection_module, "_database", db)
    for module, attribute in SINGLETONS:
        monkeypatch.setattr(module, attribute, None)

    yield db

    await drain_background_tasks()
    await db.close()


@pytest.fixture
async def seeded(database):
    """Organization, users, an approved project and its shared timeline."""
    expires = utcnow() + timedelta(hours=1)

    async with database.session() as session:
        owner = UserDB(email="owner@example.com", name="Olivia Owner")
        member = UserDB(email="member@example.com", name="Max Member")
        outsider = UserDB(email="outsider@example.org", name="Otto Outsider")
        session.add_all([owner, member, outsider])
        await session.flush()

        organization = OrganizationDB(name="Agency", owner_id=owner.id)
        session.add(organization)
        await session.flush()

        session.add_all([
            OrganizationMemberDB(
                organization_id=organization.id, user_id=owner.id, role=MemberRoleEnum.OWNER.value
            ),
            OrganizationMemberDB(
                organization_id=organization.id, user_id=member.id, role=MemberRoleEnum.MEMBER.value
            ),
            OrganizationSettingsDB(
                organization_id=organization.id,
                default_hourly_rate=Decimal("150"),
                hours_per_week=40,
            ),
            AuthSessionDB(token=OWNER_TOKEN, user_id=owner.id, expires_at=expires),
            AuthSessionDB(token=MEMBER_TOKEN, user_id=member.id, expires_at=expires),
            AuthSessionDB(token=OUTSIDER_TOKEN, user_id=outsider.id, expires_at=expires),
        ])

        project = ProjectDB(
            organization_id=organization.id,
            name="Marketing Site",
            client_name="Clara Client",
            client_email="clara@example.com",
            project_type="web",
            project_brief="A marketing website with a contact form.",
            budget=Decimal("80000"),
            status=ProjectStatusEnum.APPROVED.value,
            created_by=owner.id,
        )
        session.add(project)
        await session.flush()

        timeline = TimelineDB(
            project_id=project.id,
            phases=[
                {"id": "phase-1", "name": "Discovery", "duration_weeks": 2,
                 "tasks": ["Interviews"], "dependencies": []},
                {"id": "phase-2", "name": "Build", "duration_weeks": 10,
                 "tasks": ["Pages", "CMS"], "dependencies": ["phase-1"]},
            ],
            milestones=[{"name": "Launch", "week": 12}],
            risks=[],
            total_weeks=Decimal("12"),
            total_hours=Decimal("480"),
            total_cost=Decimal("72000"),
            share_token=SHARE_TOKEN,
        )
        session.add(timeline)
        await session.flush()

    return SimpleNamespace(
        db=database,
        owner=owner,
        member=member,
        outsider=outsider,
        organization=organization,
        project=project,
        timeline=timeline,
        share_token=SHARE_TOKEN,
        owner_token=OWNER_TOKEN,
        member_token=MEMBER_TOKEN,
        outsider_token=OUTSIDER_TOKEN,
    )


@pytest.fixture
def fake_completion():
    """Completion client whose reply each test sets."""
    client = AsyncMock()
    client.complete = AsyncMock(return_value="Happy to help with that.")
    return client


@pytest.fixture
def fake_email_sender():
    """Email sender recording calls and always succeeding."""
    sender = AsyncMock()
    sender.send = AsyncMock(return_value=True)
    return sender


@pytest.fixture
def mock_database():
    """Mock database with session context manager."""
    db = Mock()
    session = AsyncMock()

    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)

    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.add = Mock()

    db.session = Mock(return_value=session)

    return db, session
