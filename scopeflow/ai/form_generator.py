"""
Client intake form generation from a project brief.
"""

import logging
import re
from decimal import Decimal
from typing import Optional

from config import settings
from .completion import CompletionClient, get_completion_client
from .prompts import PromptTemplates
from .structured_output import IntakeFormOutput, extract_structured_payload
from ..errors import CompletionServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert project scoping assistant. You respond with valid JSON only."

CHOICE_TYPES = frozenset({"radio", "checkbox", "select"})

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def question_id(section_index: int, question_index: int, label: str) -> str:
    """Stable id for a question the model left unnamed: ``q_0_1_budget_range``."""
    slug = _NON_ALNUM.sub("_", label.lower())[:30]
    return f"q_{section_index}_{question_index}_{slug}"


def sanitize_form(form: IntakeFormOutput) -> IntakeFormOutput:
    """
    Make a generated form safe to render and validate answers against.

    Every question gets a unique id, and choice questions without options
    become free-text questions.
    """
    seen = set()
    for section_index, section in enumerate(form.sections):
        for question_index, question in enumerate(section.questions):
            if not question.id or question.id in seen:
                question.id = question_id(section_index, question_index, question.label)
            seen.add(question.id)

            if question.type in CHOICE_TYPES and not question.options:
                logger.warning(
                    f"Question {question.id!r} is {question.type} without options; using text instead"
                )
                question.type = "text"
                question.options = None
    return form


class FormGenerator:
    """Asks the completion service for a client intake questionnaire."""

    def __init__(self, client: Optional[CompletionClient] = None):
        self.client = client or get_completion_client()

    async def generate(
        self,
        project_brief: str,
        project_type: str,
        hourly_rate: Decimal,
        custom_instructions: str = "",
    ) -> IntakeFormOutput:
        """
        Generate a sanitized intake form.

        Raises:
            Completion*Error: The completion call failed
            CompletionServiceError: The reply held no valid form
        """
        prompt = PromptTemplates.form_generation_prompt(
            project_brief=project_brief,
            project_type=project_type,
            hourly_rate=hourly_rate,
            custom_instructions=custom_instructions,
        )

        text = await self.client.complete(
            SYSTEM_PROMPT,
            [{"role": "user", "content": prompt}],
            temperature=0.7,
            max_tokens=settings.llm_form_max_tokens,
        )

        form = extract_structured_payload(text, IntakeFormOutput)
        if form is None:
            logger.error(f"Form generation returned no valid form ({len(text)} chars)")
            raise CompletionServiceError("Failed to parse intake form from AI response")

        form = sanitize_form(form)
        question_count = sum(len(section.questions) for section in form.sections)
        logger.info(f"Generated intake form: {len(form.sections)} sections, {question_count} questions")
        return form


# Singleton
_form_generator: Optional[FormGenerator] = None


def get_form_generator() -> FormGenerator:
    """Get the form generator singleton."""
    global _form_generator
    if _form_generator is None:
        _form_generator = FormGenerator()
    return _form_generator
