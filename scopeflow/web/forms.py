"""
Public routes for clients holding an intake form share token.
"""

from fastapi import APIRouter, Depends

from ..models.api_validation import SubmitFormRequest
from ..services.intake_forms import IntakeFormService, get_intake_form_service

router = APIRouter(prefix="/api", tags=["client"])


@router.get("/forms/{share_token}")
async def get_form(
    share_token: str,
    service: IntakeFormService = Depends(get_intake_form_service),
):
    """Form questions; 410 once the form has been submitted."""
    return await service.get_public_form(share_token)


@router.post("/forms/{share_token}")
async def submit_form(
    share_token: str,
    body: SubmitFormRequest,
    service: IntakeFormService = Depends(get_intake_form_service),
):
    await service.submit_form(share_token, body.responses, client_email=body.client_email)
    return {"success": True, "message": "Form submitted successfully"}
