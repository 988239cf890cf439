"""
Timeline generation from a project brief and questionnaire answers.
"""

import logging
from decimal import Decimal
from typing import Optional

from config import settings
from .completion import CompletionClient, get_completion_client
from .prompts import PromptTemplates
from .structured_output import TimelineGenerationOutput, extract_structured_payload
from ..errors import CompletionServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert project manager. You respond with valid JSON only."


class TimelineGenerator:
    """Asks the completion service for a phase-by-phase timeline."""

    def __init__(self, client: Optional[CompletionClient] = None):
        self.client = client or get_completion_client()

    async def generate(
        self,
        project_brief: str,
        project_type: str,
        client_name: str,
        hourly_rate: Decimal,
        hours_per_week: int,
        form_responses: Optional[dict] = None,
        custom_instructions: str = "",
    ) -> TimelineGenerationOutput:
        """
        Generate a timeline.

        Raises:
            Completion*Error: The completion call failed
            CompletionServiceError: The reply held no valid timeline
        """
        prompt = PromptTemplates.timeline_generation_prompt(
            project_brief=project_brief,
            project_type=project_type,
            client_name=client_name,
            hourly_rate=hourly_rate,
            hours_per_week=hours_per_week,
            form_responses=form_responses,
            custom_instructions=custom_instructions,
        )

        text = await self.client.complete(
            SYSTEM_PROMPT,
            [{"role": "user", "content": prompt}],
            temperature=0.4,
            max_tokens=settings.llm_timeline_max_tokens,
        )

        timeline = extract_structured_payload(text, TimelineGenerationOutput)
        if timeline is None:
            logger.error(f"Timeline generation returned no valid timeline ({len(text)} chars)")
            raise CompletionServiceError("Failed to parse timeline from AI response")

        logger.info(
            f"Generated timeline for {client_name}: {len(timeline.phases)} phases, "
            f"{timeline.total_weeks} weeks"
        )
        return timeline


# Singleton
_timeline_generator: Optional[TimelineGenerator] = None


def get_timeline_generator() -> TimelineGenerator:
    """Get the timeline generator singleton."""
    global _timeline_generator
    if _timeline_generator is None:
        _timeline_generator = TimelineGenerator()
    return _timeline_generator
