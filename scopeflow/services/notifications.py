"""
Notification emails for change orders, intake forms and shared timelines.

Builders are pure; ``notify`` schedules the send as a background task so
the request that triggered it never waits on (or fails because of) email.
"""

import logging
from dataclasses import dataclass
from html import escape
from typing import List, Optional

from ..integrations.email import EmailSender, get_email_sender
from ..utils.background_tasks import schedule
from ..utils.formatting import format_cost_delta, format_weeks_delta

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


def change_order_request_email(
    to: str,
    project_name: str,
    summary: str,
    changes: List[str],
    delta_cost,
    delta_weeks,
    client_email: str,
    client_notes: Optional[str] = None,
) -> EmailMessage:
    """Email to an organization owner about a new change order."""
    cost = format_cost_delta(delta_cost)
    weeks = format_weeks_delta(delta_weeks)

    change_items = "".join(f"<li>{escape(change)}</li>" for change in changes)
    notes_html = f"<h3>Client Notes</h3><p>{escape(client_notes)}</p>" if client_notes else ""

    html = f"""<h2>New Change Order Request</h2>
<p>A client has requested a scope change for <strong>{escape(project_name)}</strong>.</p>

<h3>Proposal Summary</h3>
<p>{escape(summary)}</p>

<h3>Impact</h3>
<ul>
  <li><strong>Cost Change:</strong> {cost}</li>
  <li><strong>Timeline Change:</strong> {weeks}</li>
</ul>

<h3>Proposed Changes</h3>
<ul>{change_items}</ul>

{notes_html}

<p><strong>Client Email:</strong> {escape(client_email)}</p>

<p>Please review this change order request in your dashboard.</p>"""

    change_lines = "\n".join(f"- {change}" for change in changes)
    notes_text = f"Client Notes:\n{client_notes}\n\n" if client_notes else ""

    text = f"""New Change Order Request

A client has requested a scope change for {project_name}.

Proposal Summary:
{summary}

Impact:
- Cost Change: {cost}
- Timeline Change: {weeks}

Proposed Changes:
{change_lines}

{notes_text}Client Email: {client_email}

Please review this change order request in your dashboard."""

    return EmailMessage(
        to=to,
        subject=f"New Change Order Request: {project_name}",
        html=html,
        text=text,
    )


def timeline_shared_email(
    to: str,
    client_name: str,
    project_name: str,
    timeline_url: str,
    agency_name: str = "ScopeFlow",
) -> EmailMessage:
    """Email to the client with the link to their shared timeline."""
    html = f"""<h2>Your Project Timeline is Ready</h2>
<p>Hi {escape(client_name)},</p>
<p>We've completed the project timeline for <strong>{escape(project_name)}</strong>.</p>
<p>This detailed timeline includes:</p>
<ul>
  <li>Project phases and deliverables</li>
  <li>Estimated duration and milestones</li>
  <li>Cost breakdown and investment details</li>
  <li>Key assumptions and risk considerations</li>
</ul>
<p><a href="{escape(timeline_url, quote=True)}">View Project Timeline</a></p>
<p>You can also ask questions and explore scope changes directly from the timeline page.</p>
<p>Best regards,<br>{escape(agency_name)} Team</p>"""

    text = f"""Hi {client_name},

We've completed the project timeline for {project_name}.

View your project timeline here: {timeline_url}

You can also ask questions and explore scope changes directly from the timeline page.

Best regards,
{agency_name} Team"""

    return EmailMessage(
        to=to,
        subject=f"Your Project Timeline for {project_name} is Ready",
        html=html,
        text=text,
    )


def intake_form_email(
    to: str,
    client_name: str,
    project_name: str,
    form_url: str,
    agency_name: str = "ScopeFlow",
) -> EmailMessage:
    """Email asking the client to fill in the project intake form."""
    html = f"""<h2>Tell Us About Your Project</h2>
<p>Hi {escape(client_name)},</p>
<p>To scope <strong>{escape(project_name)}</strong> accurately, we'd like a few details from you.</p>
<p>The questionnaire takes about 10 minutes. Each option shows how it affects scope and timeline.</p>
<p><a href="{escape(form_url, quote=True)}">Open the Project Questionnaire</a></p>
<p>Best regards,<br>{escape(agency_name)} Team</p>"""

    text = f"""Hi {client_name},

To scope {project_name} accurately, we'd like a few details from you.

Fill in the project questionnaire here: {form_url}

Best regards,
{agency_name} Team"""

    return EmailMessage(
        to=to,
        subject=f"A Few Questions About {project_name}",
        html=html,
        text=text,
    )


def notify(message: EmailMessage, task_name: str, sender: Optional[EmailSender] = None):
    """Send an email in the background."""
    sender = sender or get_email_sender()
    return schedule(
        sender.send(message.to, message.subject, message.html, message.text),
        task_name,
    )
