"""
Services for business logic.
"""

from .projects import ProjectService, get_project_service
from .intake_forms import IntakeFormService, FormLink, get_intake_form_service
from .timelines import TimelineService, TimelineRef, get_timeline_service
from .chat_sessions import SessionManager
from .proposals import ProposalService, ProposalComparison, get_proposal_service
from .scope_chat import ScopeChatService, ChatTurn, get_scope_chat_service
from .change_orders import ChangeOrderService, get_change_order_service
from .approval import ApprovalService, ShareResult, get_approval_service
from .rate_limiter import (
    RateLimiter,
    InMemoryRateLimiter,
    RedisRateLimiter,
    RateLimitExceeded,
    get_rate_limiter,
)

__all__ = [
    "ProjectService",
    "get_project_service",
    "IntakeFormService",
    "FormLink",
    "get_intake_form_service",
    "TimelineService",
    "TimelineRef",
    "get_timeline_service",
    "SessionManager",
    "ProposalService",
    "ProposalComparison",
    "get_proposal_service",
    "ScopeChatService",
    "ChatTurn",
    "get_scope_chat_service",
    "ChangeOrderService",
    "get_change_order_service",
    "ApprovalService",
    "ShareResult",
    "get_approval_service",
    "RateLimiter",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "RateLimitExceeded",
    "get_rate_limiter",
]
