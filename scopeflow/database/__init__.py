"""
PostgreSQL Database Module for ScopeFlow.

Handles:
- Organizations, members and pricing settings
- Projects, their intake forms and baseline timelines
- Client chat sessions, messages and scope-change proposals
- Change orders awaiting organization approval
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
)
from .models import (
    Base,
    UserDB,
    AuthSessionDB,
    OrganizationDB,
    OrganizationMemberDB,
    OrganizationSettingsDB,
    ProjectDB,
    ProjectFormDB,
    TimelineDB,
    ChatSessionDB,
    ChatMessageDB,
    ProposalDB,
    ChangeOrderDB,
)

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "Base",
    "UserDB",
    "AuthSessionDB",
    "OrganizationDB",
    "OrganizationMemberDB",
    "OrganizationSettingsDB",
    "ProjectDB",
    "ProjectFormDB",
    "TimelineDB",
    "ChatSessionDB",
    "ChatMessageDB",
    "ProposalDB",
    "ChangeOrderDB",
]
