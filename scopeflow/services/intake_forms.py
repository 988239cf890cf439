"""
Client intake forms.

Members generate a questionnaire from the project brief and send its link
to the client. The client opens and submits it without an account; the
answers feed timeline generation.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config import settings
from ..ai.form_generator import FormGenerator, CHOICE_TYPES, get_form_generator
from ..auth import Identity
from ..database.models import ProjectFormDB, ProjectStatusEnum
from ..database.repositories.forms import FormRepository, get_form_repository
from ..database.repositories.organizations import OrganizationRepository, get_organization_repository
from ..database.repositories.projects import ProjectRepository, get_project_repository
from ..errors import FormClosedError, NotFoundError, ValidationError
from ..integrations.email import EmailSender
from .approval import generate_share_token
from .notifications import intake_form_email, notify
from .org_context import effective_pricing, load_member_project

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_form_responses(responses: Dict[str, Any], form_data: Dict[str, Any]) -> List[str]:
    """
    Check answers against the form's questions.

    Returns one ``"<question id>: <problem>"`` entry per bad answer; answers
    to unknown question ids are ignored.
    """
    errors = []
    for section in form_data.get("sections", []):
        for question in section.get("questions", []):
            question_id = question["id"]
            value = responses.get(question_id)
            required = bool(question.get("required"))
            allowed = {option["value"] for option in question.get("options") or []}

            if question["type"] == "checkbox":
                if value is None:
                    if required:
                        errors.append(f"{question_id}: This field is required")
                elif not isinstance(value, list):
                    errors.append(f"{question_id}: Must be an array")
                elif required and not value:
                    errors.append(f"{question_id}: This field is required")
                elif any(not isinstance(choice, str) or choice not in allowed for choice in value):
                    errors.append(f"{question_id}: Invalid option(s) selected")

            elif question["type"] in CHOICE_TYPES:
                if _is_blank(value):
                    if required:
                        errors.append(f"{question_id}: This field is required")
                elif not isinstance(value, str) or value not in allowed:
                    errors.append(f"{question_id}: Invalid option selected")

            elif required and _is_blank(value):
                errors.append(f"{question_id}: This field is required")

    return errors


@dataclass
class FormLink:
    share_token: str
    share_url: str
    emailed: bool


class IntakeFormService:
    """Generation, sending and public submission of intake forms."""

    def __init__(
        self,
        projects: Optional[ProjectRepository] = None,
        forms: Optional[FormRepository] = None,
        organizations: Optional[OrganizationRepository] = None,
        generator: Optional[FormGenerator] = None,
        email_sender: Optional[EmailSender] = None,
    ):
        self.projects = projects or get_project_repository()
        self.forms = forms or get_form_repository()
        self.organizations = organizations or get_organization_repository()
        self._generator = generator
        self.email_sender = email_sender

    @property
    def generator(self) -> FormGenerator:
        if self._generator is None:
            self._generator = get_form_generator()
        return self._generator

    # ==================== MEMBERS ====================

    async def generate_form(self, project_id: str, identity: Identity) -> ProjectFormDB:
        """
        Generate the project's intake form, replacing any earlier questions.

        Raises:
            ValidationError: Project has no brief
            Completion*Error: Generation failed
        """
        project = await load_member_project(self.projects, project_id, identity)

        if not project.project_brief:
            raise ValidationError("Project brief is required to generate a form")

        org_settings = await self.organizations.get_settings(project.organization_id)
        hourly_rate, _ = effective_pricing(org_settings)
        custom_prompts = (org_settings.custom_ai_prompts if org_settings else None) or {}

        logger.info(f"Generating intake form for project {project_id}")
        generated = await self.generator.generate(
            project_brief=project.project_brief,
            project_type=project.project_type,
            hourly_rate=hourly_rate,
            custom_instructions=custom_prompts.get("form_generation", ""),
        )

        return await self.forms.save_for_project(
            project.id,
            generated.model_dump(exclude_none=True),
            share_token=generate_share_token(),
        )

    async def send_form(
        self,
        project_id: str,
        identity: Identity,
        base_url: Optional[str] = None,
    ) -> FormLink:
        """
        Return the form's public link and email it to the client.

        A draft project moves to ``form_sent``; later statuses are kept.

        Raises:
            NotFoundError: No form generated yet
        """
        project = await load_member_project(self.projects, project_id, identity)

        form = await self.forms.get_for_project(project.id)
        if form is None:
            raise NotFoundError("No form has been generated for this project yet")

        if project.status == ProjectStatusEnum.DRAFT.value:
            await self.projects.update_status(project.id, ProjectStatusEnum.FORM_SENT)

        share_url = f"{(base_url or settings.public_base_url).rstrip('/')}/f/{form.share_token}"

        emailed = False
        if project.client_email and form.submitted_at is None:
            organization = await self.organizations.get_by_id(project.organization_id)
            message = intake_form_email(
                to=project.client_email,
                client_name=project.client_name,
                project_name=project.name,
                form_url=share_url,
                agency_name=organization.name if organization else "ScopeFlow",
            )
            notify(message, f"email-intake-form-{form.id}", sender=self.email_sender)
            emailed = True

        return FormLink(share_token=form.share_token, share_url=share_url, emailed=emailed)

    # ==================== PUBLIC (SHARE TOKEN) ====================

    async def _load_open_form(self, share_token: str):
        found = await self.forms.get_by_share_token(share_token)
        if found is None:
            raise NotFoundError("Form not found")

        form, project = found
        if form.submitted_at is not None:
            raise FormClosedError()
        return form, project

    async def get_public_form(self, share_token: str) -> Dict[str, Any]:
        """
        Questions and client-safe project fields for the form page.

        Raises:
            NotFoundError: Unknown token
            FormClosedError: Already submitted
        """
        form, project = await self._load_open_form(share_token)
        return {
            "formId": form.id,
            "formData": form.form_data,
            "projectName": project.name,
            "clientName": project.client_name,
            "clientEmail": form.client_email or project.client_email,
        }

    async def submit_form(
        self,
        share_token: str,
        responses: Dict[str, Any],
        client_email: Optional[str] = None,
    ) -> None:
        """
        Record the client's answers once.

        Raises:
            NotFoundError: Unknown token
            FormClosedError: Already submitted
            ValidationError: Answers do not fit the questions (``details``
                lists each problem)
        """
        form, _ = await self._load_open_form(share_token)

        errors = validate_form_responses(responses, form.form_data)
        if errors:
            raise ValidationError("Invalid form responses", details=errors)

        if not await self.forms.record_submission(form.id, responses, client_email=client_email):
            raise FormClosedError()


# Singleton
_intake_form_service: Optional[IntakeFormService] = None


def get_intake_form_service() -> IntakeFormService:
    """Get the intake form service singleton."""
    global _intake_form_service
    if _intake_form_service is None:
        _intake_form_service = IntakeFormService()
    return _intake_form_service
