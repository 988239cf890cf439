"""
Pydantic models for API endpoint input validation.

Field names follow the JSON the share page and dashboard send
(``clientEmail``, ``proposalId``...); Python code uses snake_case.
"""

from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

ProjectType = Literal["saas", "mobile", "web", "ecommerce", "custom"]


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============================================
# CLIENT (SHARE TOKEN) ENDPOINTS
# ============================================

class ChatRequest(_ApiModel):
    """A client chat message."""
    message: str = Field(..., min_length=1, max_length=5000)
    client_email: Optional[EmailStr] = Field(None, alias="clientEmail")

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        if not v.strip():
            raise ValueError("message cannot be blank")
        return v


class ChangeOrderRequest(_ApiModel):
    """A client request to turn a proposal into a change order."""
    proposal_id: str = Field(..., min_length=1, max_length=64, alias="proposalId")
    client_email: EmailStr = Field(..., alias="clientEmail")
    client_notes: Optional[str] = Field(None, max_length=5000, alias="clientNotes")
    share_token: str = Field(..., min_length=1, max_length=128, alias="shareToken")


class SubmitFormRequest(_ApiModel):
    """A client's answers to an intake form, keyed by question id."""
    responses: Dict[str, Any]
    client_email: Optional[EmailStr] = Field(None, alias="clientEmail")


# ============================================
# ORGANIZATION ENDPOINTS
# ============================================

class ResolveChangeOrderRequest(_ApiModel):
    """Optional note attached when an owner approves or rejects."""
    note: Optional[str] = Field(None, max_length=2000)


# ============================================
# PROJECTS
# ============================================

class CreateProjectRequest(_ApiModel):
    """A new project in an organization the caller belongs to."""
    organization_id: str = Field(..., min_length=1, max_length=64, alias="organizationId")
    name: str = Field(..., min_length=1, max_length=255)
    client_name: str = Field(..., min_length=1, max_length=255, alias="clientName")
    client_email: Optional[EmailStr] = Field(None, alias="clientEmail")
    project_type: ProjectType = Field("custom", alias="projectType")
    project_brief: Optional[str] = Field(None, max_length=20000, alias="projectBrief")
    budget: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    estimated_weeks: Optional[int] = Field(None, ge=1, le=520, alias="estimatedWeeks")

    def project_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"organization_id"})


class UpdateProjectRequest(_ApiModel):
    """Partial project edit. Server-managed fields in the body are ignored."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    client_name: Optional[str] = Field(None, min_length=1, max_length=255, alias="clientName")
    client_email: Optional[EmailStr] = Field(None, alias="clientEmail")
    project_type: Optional[ProjectType] = Field(None, alias="projectType")
    project_brief: Optional[str] = Field(None, max_length=20000, alias="projectBrief")
    budget: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    estimated_weeks: Optional[int] = Field(None, ge=1, le=520, alias="estimatedWeeks")

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually sent; required columns are never cleared."""
        data = self.model_dump(exclude_unset=True)
        for column in ("name", "client_name", "project_type"):
            if data.get(column, "") is None:
                del data[column]
        return data
