"""
Repository classes for database operations.

Each repository handles CRUD and complex queries for its entity type.
"""

from .organizations import OrganizationRepository, get_organization_repository
from .projects import ProjectRepository, get_project_repository
from .forms import FormRepository, get_form_repository
from .timelines import TimelineRepository, get_timeline_repository
from .conversations import ConversationRepository, get_conversation_repository
from .proposals import ProposalRepository, get_proposal_repository
from .change_orders import ChangeOrderRepository, get_change_order_repository

__all__ = [
    "OrganizationRepository",
    "get_organization_repository",
    "ProjectRepository",
    "get_project_repository",
    "FormRepository",
    "get_form_repository",
    "TimelineRepository",
    "get_timeline_repository",
    "ConversationRepository",
    "get_conversation_repository",
    "ProposalRepository",
    "get_proposal_repository",
    "ChangeOrderRepository",
    "get_change_order_repository",
]
