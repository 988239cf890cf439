"""
SQLAlchemy models for PostgreSQL database.

Schema includes:
- Users, auth sessions and organization membership
- Organization pricing settings
- Projects, their intake forms and AI-generated timelines (the baseline)
- Client chat sessions and messages, keyed by timeline share token
- Scope-change proposals extracted from assistant replies
- Change orders awaiting organization approval
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    String,
    Text,
    Integer,
    DateTime,
    Numeric,
    ForeignKey,
    JSON,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ==================== ENUMS ====================

class MemberRoleEnum(str, enum.Enum):
    OWNER = "owner"
    MEMBER = "member"


class ProjectStatusEnum(str, enum.Enum):
    DRAFT = "draft"
    FORM_SENT = "form_sent"
    SCOPING = "scoping"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ProjectTypeEnum(str, enum.Enum):
    SAAS = "saas"
    MOBILE = "mobile"
    WEB = "web"
    ECOMMERCE = "ecommerce"
    CUSTOM = "custom"


class MessageRoleEnum(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ProposalStatusEnum(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    SUPERSEDED = "superseded"
    APPROVED = "approved"
    REJECTED = "rejected"


class ChangeOrderStatusEnum(str, enum.Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


# ==================== IDENTITY ====================

class UserDB(Base):
    """Accounts of organization members. Clients never have one."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AuthSessionDB(Base):
    """Bearer tokens issued by the identity provider."""
    __tablename__ = "auth_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_auth_sessions_user", "user_id"),
    )


# ==================== ORGANIZATIONS ====================

class OrganizationDB(Base):
    """Tenant owning projects."""
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    members: Mapped[List["OrganizationMemberDB"]] = relationship(
        "OrganizationMemberDB", back_populates="organization", cascade="all, delete-orphan"
    )


class OrganizationMemberDB(Base):
    """Membership of a user in an organization with a role."""
    __tablename__ = "organization_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=MemberRoleEnum.MEMBER.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    organization: Mapped["OrganizationDB"] = relationship("OrganizationDB", back_populates="members")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_org_member"),
        Index("idx_org_members_user", "user_id"),
        Index("idx_org_members_role", "organization_id", "role"),
    )


class OrganizationSettingsDB(Base):
    """Pricing defaults used for timeline generation and scope chat."""
    __tablename__ = "organization_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    default_hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("150"))
    hours_per_week: Mapped[int] = mapped_column(Integer, default=40)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    custom_ai_prompts: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ==================== PROJECTS ====================

class ProjectDB(Base):
    """Client project scoped by an organization."""
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    project_type: Mapped[str] = mapped_column(String(20), default=ProjectTypeEnum.CUSTOM.value)
    project_brief: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    estimated_weeks: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ProjectStatusEnum.DRAFT.value)
    # Questionnaire answers collected before timeline generation
    form_responses: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    timelines: Mapped[List["TimelineDB"]] = relationship(
        "TimelineDB", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_projects_org", "organization_id"),
        Index("idx_projects_status", "status"),
    )


# ==================== INTAKE FORMS ====================

class ProjectFormDB(Base):
    """AI-generated client intake form, answered through a public link.

    One form per project; regenerating replaces ``form_data`` but keeps the
    share token so links already sent keep working.
    """
    __tablename__ = "project_forms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # {sections: [{title, description, questions: [{id, type, label, options[], required}]}]}
    form_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    share_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    submitted_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ==================== TIMELINES ====================

class TimelineDB(Base):
    """Baseline timeline that proposals are deltas against.

    Stored aggregates are authoritative once persisted, even if they drift
    from the sum over ``phases``.
    """
    __tablename__ = "project_timelines"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    # [{id, name, duration_weeks, tasks[], dependencies[]}, ...]
    phases: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    milestones: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    risks: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    total_weeks: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    share_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project: Mapped["ProjectDB"] = relationship("ProjectDB", back_populates="timelines")

    __table_args__ = (
        Index("idx_timelines_project", "project_id", "created_at"),
    )

    def to_baseline_dict(self) -> dict:
        """Timeline as the JSON document shown to the model and the client."""
        return {
            "phases": self.phases or [],
            "milestones": self.milestones or [],
            "risks": self.risks or [],
            "total_weeks": float(self.total_weeks),
            "total_hours": float(self.total_hours),
            "total_cost": float(self.total_cost),
        }


# ==================== CLIENT CHAT ====================

class ChatSessionDB(Base):
    """One chat session per shared timeline."""
    __tablename__ = "timeline_chat_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    share_token: Mapped[str] = mapped_column(String(64), nullable=False)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    timeline_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("project_timelines.id", ondelete="CASCADE"), nullable=False
    )
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("share_token", name="uq_chat_session_share_token"),
        Index("idx_chat_sessions_project", "project_id"),
    )


class ChatMessageDB(Base):
    """Append-only chat transcript entry.

    The integer primary key breaks ties between messages created in the
    same clock tick, so ``(created_at, id)`` is insertion order.
    """
    __tablename__ = "timeline_chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timeline_chat_sessions.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_chat_messages_session", "session_id", "created_at"),
    )


# ==================== PROPOSALS ====================

class ProposalDB(Base):
    """Scope-change delta extracted from an assistant reply."""
    __tablename__ = "timeline_proposals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timeline_chat_sessions.id", ondelete="CASCADE"), nullable=False
    )
    base_timeline_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("project_timelines.id", ondelete="CASCADE"), nullable=False
    )

    # {type, summary, changes[], deltaCost, deltaWeeks, reasoning}
    proposal_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    delta_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    delta_weeks: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=ProposalStatusEnum.DRAFT.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_proposals_session", "session_id", "created_at"),
    )

    @property
    def changes(self) -> List[str]:
        return list((self.proposal_data or {}).get("changes") or [])


# ==================== CHANGE ORDERS ====================

class ChangeOrderDB(Base):
    """Client request to turn a proposal into an approved scope change."""
    __tablename__ = "project_change_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    proposal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timeline_proposals.id", ondelete="CASCADE"), nullable=False
    )

    # Public clients have no account
    requested_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ChangeOrderStatusEnum.PENDING_APPROVAL.value)

    approved_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("proposal_id", name="uq_change_order_proposal"),
        Index("idx_change_orders_project", "project_id", "status"),
    )
