"""Prompt templates for scope chat, intake forms and timeline generation."""

import json
from decimal import Decimal
from typing import Dict, Any, Optional


def _money(value: Optional[Decimal]) -> str:
    if value is None:
        return "Not specified"
    return f"${value:,.2f}".replace(".00", "")


class PromptTemplates:
    """Collection of prompt templates for the scoping workflow."""

    SCOPE_CHANGE_FORMAT = """{
  "type": "scope_change",
  "summary": "Brief description of the change",
  "changes": ["Change 1", "Change 2"],
  "deltaCost": 5000,
  "deltaWeeks": 2,
  "reasoning": "Explanation of the estimate"
}"""

    @classmethod
    def scope_chat_system_prompt(
        cls,
        project: Dict[str, Any],
        timeline: Dict[str, Any],
        hourly_rate: Decimal,
        hours_per_week: int,
    ) -> str:
        """System instruction for the client scope-change chat.

        Embeds the full baseline so every delta is computed against it.
        """
        return f"""You are an AI assistant helping a client explore scope changes for their project.

Project: {project.get("name")}
Project Type: {project.get("project_type")}
Current Budget: {_money(project.get("budget"))}
Current Timeline: {timeline.get("total_weeks")} weeks
Hourly Rate: {_money(hourly_rate)}
Hours per Week: {hours_per_week}

Current Project Timeline:
{json.dumps(timeline, indent=2)}

Your role:
1. Answer questions about the current scope and timeline
2. When the client suggests changes (adding features, extending timeline, etc.), calculate the impact
3. For scope changes, respond with a JSON proposal in this format:
{cls.SCOPE_CHANGE_FORMAT}

   deltaCost and deltaWeeks are plain numbers relative to the current totals.
   Use negative numbers for reductions. Price extra work at the hourly rate above.

4. For general questions, respond conversationally without the JSON format

Be helpful, professional, and transparent about costs and timeline impacts."""

    @staticmethod
    def timeline_generation_prompt(
        project_brief: str,
        project_type: str,
        client_name: str,
        hourly_rate: Decimal,
        hours_per_week: int,
        form_responses: Optional[Dict[str, Any]] = None,
        custom_instructions: str = "",
    ) -> str:
        """Prompt that asks for a phase-by-phase timeline as JSON."""
        responses = json.dumps(form_responses or {}, indent=2)

        return f"""You are an expert project manager and technical estimator.

Based on the project details and client's questionnaire responses below, generate a detailed project timeline with phases, tasks, and cost estimates.

CLIENT: {client_name}
PROJECT TYPE: {project_type}
HOURLY RATE: {_money(hourly_rate)}
HOURS PER WEEK: {hours_per_week}

PROJECT BRIEF:
{project_brief}

QUESTIONNAIRE RESPONSES:
{responses}

{custom_instructions}

Generate a comprehensive project timeline broken down into logical phases. For each phase:
1. Provide a unique ID (e.g., "phase-1", "phase-2")
2. Give it a clear name
3. Estimate its duration in weeks (duration_weeks)
4. List the concrete tasks it contains
5. Specify dependencies on other phase IDs

Requirements:
- Include all typical phases for a {project_type} project (e.g., Discovery & Planning, Design, Development, Testing, Launch)
- Identify key milestones and risks that could impact the timeline
- Ensure total_hours = total_weeks * {hours_per_week}
- Ensure total_cost = total_hours * {hourly_rate}

Respond with ONLY a JSON object in this exact shape:
{{
  "phases": [
    {{
      "id": "phase-1",
      "name": "Discovery & Planning",
      "duration_weeks": 2,
      "tasks": ["Stakeholder interviews", "Requirements document"],
      "dependencies": []
    }},
    {{
      "id": "phase-2",
      "name": "Design",
      "duration_weeks": 3,
      "tasks": ["Wireframes", "Visual design"],
      "dependencies": ["phase-1"]
    }}
  ],
  "total_weeks": 12,
  "total_hours": 480,
  "total_cost": 72000,
  "milestones": [{{"name": "Design sign-off", "week": 5}}],
  "risks": [{{"description": "Third-party API delays", "impact": "medium"}}]
}}

Generate the timeline now:"""

    @staticmethod
    def form_generation_prompt(
        project_brief: str,
        project_type: str,
        hourly_rate: Decimal,
        custom_instructions: str = "",
    ) -> str:
        """Prompt that asks for a client intake questionnaire as JSON."""
        custom = f"CUSTOM INSTRUCTIONS: {custom_instructions}\n" if custom_instructions else ""

        return f"""You are an expert project scoping assistant helping to gather detailed requirements from clients.

Based on the project brief and type below, generate a client intake form that gathers everything needed to accurately scope and estimate the project.

PROJECT TYPE: {project_type}
HOURLY RATE: {_money(hourly_rate)}

PROJECT BRIEF:
{project_brief}

{custom}
Organize the form into 4-6 sections (e.g., Features, Design, Technical Requirements, Timeline) with 15-25 questions in total.

For each question:
1. Use the appropriate input type: radio, checkbox, text, textarea or select
2. Provide a clear label and, where useful, a short description
3. For radio, checkbox and select questions, list the options and give each an "impact" explaining how it changes scope or timeline (e.g., "+8-12 hours", "Requires payment provider integration")
4. Mark questions critical to the estimate as required

Cover features and functionality, design and branding, integrations and platforms, user roles and security, timeline constraints, existing assets, and post-launch support.

Respond with ONLY a JSON object in this exact shape:
{{
  "sections": [
    {{
      "title": "Features",
      "description": "What the product needs to do",
      "questions": [
        {{
          "id": "user_accounts",
          "type": "radio",
          "label": "Do users need to create accounts?",
          "description": "Accounts add sign-up, login and password reset flows",
          "options": [
            {{"value": "yes", "label": "Yes", "impact": "+20-30 hours"}},
            {{"value": "no", "label": "No", "impact": "No additional work"}}
          ],
          "required": true
        }}
      ]
    }}
  ]
}}

Generate the form now:"""
