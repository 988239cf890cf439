from .completion import CompletionClient, get_completion_client
from .form_generator import FormGenerator, get_form_generator, sanitize_form
from .prompts import PromptTemplates
from .structured_output import (
    IntakeFormOutput,
    ScopeChangePayload,
    TimelineGenerationOutput,
    extract_scope_change,
    extract_structured_payload,
)
from .timeline_generator import TimelineGenerator, get_timeline_generator

__all__ = [
    "CompletionClient",
    "get_completion_client",
    "FormGenerator",
    "get_form_generator",
    "sanitize_form",
    "IntakeFormOutput",
    "PromptTemplates",
    "ScopeChangePayload",
    "TimelineGenerationOutput",
    "extract_scope_change",
    "extract_structured_payload",
    "TimelineGenerator",
    "get_timeline_generator",
]
