"""
Extraction of typed JSON payloads from free-form model output.

The completion service answers in prose and, when asked for a structured
result, embeds a JSON object somewhere in the text: inside a fenced
code block, or bare in the middle of a sentence. This module finds those
objects and validates them against a pydantic schema. It never raises on
malformed output; callers get ``None`` instead.
"""

import json
import logging
import re
from typing import Any, Dict, Iterator, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCED_BLOCK = re.compile(r"```[\w+#.-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)
_DECODER = json.JSONDecoder()

Number = Union[StrictInt, StrictFloat]


# ==================== SCHEMAS ====================

class ScopeChangePayload(BaseModel):
    """Scope-change proposal emitted by the scope chat assistant."""

    model_config = ConfigDict(
        strict=True,
        populate_by_name=True,
        allow_inf_nan=False,
        extra="ignore",
    )

    type: Literal["scope_change"]
    summary: str = Field(min_length=1)
    changes: List[str]
    delta_cost: Number = Field(alias="deltaCost")
    delta_weeks: Number = Field(alias="deltaWeeks")
    reasoning: str

    def to_document(self) -> Dict[str, Any]:
        """Wire shape stored in ``proposal_data``."""
        return self.model_dump(by_alias=True)


class TimelinePhase(BaseModel):
    """One phase of a generated timeline."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    duration_weeks: float = Field(gt=0)
    tasks: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)


class TimelineGenerationOutput(BaseModel):
    """Timeline returned by timeline generation.

    Only the ``id/name/duration_weeks/tasks/dependencies`` phase shape is
    accepted; phases shaped as ``estimatedHours/estimatedCost/deliverables``
    fail validation.
    """

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    phases: List[TimelinePhase] = Field(min_length=1)
    total_weeks: float = Field(gt=0)
    total_hours: float = Field(ge=0)
    total_cost: float = Field(ge=0)
    milestones: List[Dict[str, Any]] = Field(default_factory=list)
    risks: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("phases")
    @classmethod
    def validate_dependencies(cls, phases: List[TimelinePhase]) -> List[TimelinePhase]:
        ids = [phase.id for phase in phases]
        if len(set(ids)) != len(ids):
            raise ValueError("phase ids must be unique")
        known = set(ids)
        for phase in phases:
            unknown = [dep for dep in phase.dependencies if dep not in known]
            if unknown:
                raise ValueError(f"phase {phase.id} depends on unknown phases {unknown}")
        return phases


class FormOption(BaseModel):
    """One choice of a radio, checkbox or select question."""

    model_config = ConfigDict(extra="ignore")

    value: str = Field(min_length=1)
    label: str = Field(min_length=1)
    impact: str = ""


class FormQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: Literal["radio", "checkbox", "text", "select", "textarea"]
    label: str = Field(min_length=1)
    description: Optional[str] = None
    options: Optional[List[FormOption]] = None
    required: bool = False


class FormSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    description: str = ""
    questions: List[FormQuestion] = Field(min_length=1)


class IntakeFormOutput(BaseModel):
    """Client intake questionnaire returned by form generation."""

    model_config = ConfigDict(extra="ignore")

    sections: List[FormSection] = Field(min_length=1)


# ==================== EXTRACTION ====================

def _decode_objects(
    text: str,
    start: int = 0,
    end: Optional[int] = None,
    skip=(),
) -> Iterator[Dict[str, Any]]:
    """Decode JSON objects starting at each ``{`` in ``text[start:end]``.

    Positions inside any ``(start, end)`` span of ``skip`` are jumped over.
    """
    end = len(text) if end is None else end
    index = text.find("{", start, end)
    while index != -1:
        span_end = next((e for s, e in skip if s <= index < e), None)
        if span_end is not None:
            index = text.find("{", span_end, end)
            continue
        try:
            value, stop = _DECODER.raw_decode(text[:end], index)
        except json.JSONDecodeError:
            index = text.find("{", index + 1, end)
            continue
        if isinstance(value, dict):
            yield value
        index = text.find("{", stop, end)


def iter_json_objects(text: str) -> Iterator[Dict[str, Any]]:
    """Yield every JSON object embedded in ``text``.

    Fenced code blocks are tried first, whatever their language tag, then
    bare objects anywhere in the text. Inside a block the object may follow
    other code (``const proposal = {...}``). Objects nested inside an
    already-yielded object are not yielded again.
    """
    if not text:
        return

    fenced_spans = []
    for match in _FENCED_BLOCK.finditer(text):
        fenced_spans.append((match.start(), match.end()))
        found = False
        for value in _decode_objects(text, match.start(1), match.end(1)):
            found = True
            yield value
        if not found:
            logger.debug("Fenced block holds no JSON object")

    yield from _decode_objects(text, skip=fenced_spans)


def extract_structured_payload(
    text: str,
    schema: Type[T],
    discriminator: Optional[Dict[str, Any]] = None,
) -> Optional[T]:
    """Return the first object in ``text`` that validates against ``schema``.

    Args:
        text: Raw model output
        schema: Pydantic model the payload must satisfy
        discriminator: Key/value pairs a candidate must carry to be
            considered at all (e.g. ``{"type": "scope_change"}``). A candidate
            that carries them but fails validation is logged as malformed.

    Returns:
        The validated payload, or None when nothing valid is present
    """
    for candidate in iter_json_objects(text):
        if discriminator and any(candidate.get(k) != v for k, v in discriminator.items()):
            continue
        try:
            return schema.model_validate(candidate)
        except PydanticValidationError as e:
            logger.warning(
                f"Discarding malformed {schema.__name__} payload: "
                f"{e.error_count()} validation error(s): {e.errors(include_url=False)}"
            )
    return None


def extract_scope_change(text: str) -> Optional[ScopeChangePayload]:
    """Find a ``scope_change`` proposal in an assistant reply."""
    return extract_structured_payload(
        text,
        ScopeChangePayload,
        discriminator={"type": "scope_change"},
    )
