"""
Organization routes: project management, intake forms, timeline generation,
approval, sharing and change order resolution. Create and list name the
organization explicitly; otherwise the project (or change order) in the path
determines it. The caller's membership is checked by the services.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import Identity
from ..database.models import ChangeOrderDB, ProjectDB
from ..models.api_validation import CreateProjectRequest, ResolveChangeOrderRequest, UpdateProjectRequest
from ..services.approval import ApprovalService, get_approval_service
from ..services.intake_forms import IntakeFormService, get_intake_form_service
from ..services.projects import ProjectService, get_project_service
from ..services.timelines import TimelineService, get_timeline_service
from .dependencies import current_identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["organization"])


def serialize_change_order(change_order: ChangeOrderDB) -> dict:
    return {
        "id": change_order.id,
        "projectId": change_order.project_id,
        "proposalId": change_order.proposal_id,
        "clientEmail": change_order.client_email,
        "clientNotes": change_order.client_notes,
        "status": change_order.status,
        "approvedBy": change_order.approved_by,
        "resolvedAt": change_order.resolved_at,
        "resolutionNote": change_order.resolution_note,
        "createdAt": change_order.created_at,
    }


def serialize_project(project: ProjectDB) -> dict:
    return {
        "id": project.id,
        "organizationId": project.organization_id,
        "name": project.name,
        "clientName": project.client_name,
        "clientEmail": project.client_email,
        "projectType": project.project_type,
        "projectBrief": project.project_brief,
        "budget": float(project.budget) if project.budget is not None else None,
        "estimatedWeeks": project.estimated_weeks,
        "status": project.status,
        "formResponses": project.form_responses,
        "createdBy": project.created_by,
        "createdAt": project.created_at,
        "updatedAt": project.updated_at,
    }


# ==================== PROJECTS ====================

@router.post("/projects", status_code=201)
async def create_project(
    body: CreateProjectRequest,
    identity: Identity = Depends(current_identity),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.create_project(identity, body.organization_id, **body.project_fields())
    return {"project": serialize_project(project)}


@router.get("/projects")
async def list_projects(
    organization_id: str = Query(..., alias="organizationId"),
    status: Optional[str] = None,
    identity: Identity = Depends(current_identity),
    service: ProjectService = Depends(get_project_service),
):
    projects = await service.list_projects(identity, organization_id, status=status)
    return {"projects": [serialize_project(project) for project in projects]}


@router.get("/projects/{project_id}")
async def get_project(
    project_id: str,
    identity: Identity = Depends(current_identity),
    service: ProjectService = Depends(get_project_service),
):
    return {"project": serialize_project(await service.get_project(project_id, identity))}


@router.patch("/projects/{project_id}")
async def update_project(
    project_id: str,
    body: UpdateProjectRequest,
    identity: Identity = Depends(current_identity),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.update_project(project_id, identity, body.changes())
    return {"project": serialize_project(project)}


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: str,
    identity: Identity = Depends(current_identity),
    service: ProjectService = Depends(get_project_service),
):
    await service.delete_project(project_id, identity)
    return {"success": True}


# ==================== INTAKE FORMS ====================

@router.post("/projects/{project_id}/generate-form")
async def generate_form(
    project_id: str,
    identity: Identity = Depends(current_identity),
    service: IntakeFormService = Depends(get_intake_form_service),
):
    form = await service.generate_form(project_id, identity)
    # The share token is only handed out by send-form
    return {
        "success": True,
        "formId": form.id,
        "formData": form.form_data,
        "message": "Form generated successfully",
    }


@router.post("/projects/{project_id}/send-form")
async def send_form(
    project_id: str,
    identity: Identity = Depends(current_identity),
    service: IntakeFormService = Depends(get_intake_form_service),
):
    link = await service.send_form(project_id, identity)
    if link.emailed:
        message = "Form link emailed to client."
    else:
        message = "Form is ready to send to client."
    return {
        "success": True,
        "shareUrl": link.share_url,
        "shareToken": link.share_token,
        "message": message,
    }


# ==================== TIMELINES ====================

@router.post("/projects/{project_id}/generate-timeline")
async def generate_timeline(
    project_id: str,
    identity: Identity = Depends(current_identity),
    service: TimelineService = Depends(get_timeline_service),
):
    timeline = await service.generate(project_id, identity)
    return {
        "success": True,
        "timeline": {"id": timeline.id, **timeline.to_baseline_dict()},
        "message": "Timeline generated successfully",
    }


@router.post("/projects/{project_id}/approve-timeline")
async def approve_timeline(
    project_id: str,
    identity: Identity = Depends(current_identity),
    service: ApprovalService = Depends(get_approval_service),
):
    await service.approve_timeline(project_id, identity)
    return {"success": True, "message": "Timeline approved and project status updated"}


@router.post("/projects/{project_id}/share-timeline")
async def share_timeline(
    project_id: str,
    identity: Identity = Depends(current_identity),
    service: ApprovalService = Depends(get_approval_service),
):
    result = await service.share_timeline(project_id, identity)
    if result.is_new_share:
        message = "Timeline shared successfully. Email notification sent to client."
    else:
        message = "Timeline share link retrieved successfully."
    return {
        "success": True,
        "shareToken": result.share_token,
        "shareUrl": result.share_url,
        "message": message,
    }


@router.get("/projects/{project_id}/change-orders")
async def list_change_orders(
    project_id: str,
    status: Optional[str] = None,
    identity: Identity = Depends(current_identity),
    service: ApprovalService = Depends(get_approval_service),
):
    change_orders = await service.list_change_orders(project_id, identity, status=status)
    return {"changeOrders": [serialize_change_order(co) for co in change_orders]}


@router.post("/change-orders/{change_order_id}/approve")
async def approve_change_order(
    change_order_id: str,
    body: Optional[ResolveChangeOrderRequest] = None,
    identity: Identity = Depends(current_identity),
    service: ApprovalService = Depends(get_approval_service),
):
    change_order = await service.resolve_change_order(
        change_order_id, identity, approve=True, note=body.note if body else None
    )
    return serialize_change_order(change_order)


@router.post("/change-orders/{change_order_id}/reject")
async def reject_change_order(
    change_order_id: str,
    body: Optional[ResolveChangeOrderRequest] = None,
    identity: Identity = Depends(current_identity),
    service: ApprovalService = Depends(get_approval_service),
):
    change_order = await service.resolve_change_order(
        change_order_id, identity, approve=False, note=body.note if body else None
    )
    return serialize_change_order(change_order)
