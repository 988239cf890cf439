"""
Unit tests for structured payload extraction from model output.

Tests cover fenced blocks, bare objects, absent payloads, strict schema
validation of scope changes, and timeline generation output.
"""

import json

import pytest

from scopeflow.ai.structured_output import (
    ScopeChangePayload,
    TimelineGenerationOutput,
    extract_scope_change,
    extract_structured_payload,
    iter_json_objects,
)


def scope_change(**overrides):
    payload = {
        "type": "scope_change",
        "summary": "Add blog section",
        "changes": ["Blog listing page", "Blog post template"],
        "deltaCost": 5000,
        "deltaWeeks": 2,
        "reasoning": "Two templates plus CMS wiring.",
    }
    payload.update(overrides)
    return payload


# ============================================================
# LOCATING OBJECTS
# ============================================================

class TestIterJsonObjects:

    def test_fenced_block(self):
        text = "Here you go:\n```json\n{\"a\": 1}\n```\nAnything else?"
        assert list(iter_json_objects(text)) == [{"a": 1}]

    def test_fence_without_language(self):
        text = "```\n{\"a\": 1}\n```"
        assert list(iter_json_objects(text)) == [{"a": 1}]

    @pytest.mark.parametrize("tag", ["javascript", "js", "JSON", "jsonc"])
    def test_fence_with_any_language_tag(self, tag):
        text = f"Sure:\n```{tag}\n{{\"a\": 1}}\n```"
        assert list(iter_json_objects(text)) == [{"a": 1}]

    def test_object_after_code_inside_fence(self):
        text = "```js\nconst proposal = {\"a\": 1};\n```"
        assert list(iter_json_objects(text)) == [{"a": 1}]

    def test_bare_object_mid_sentence(self):
        text = 'The change is {"a": {"b": 2}} as discussed.'
        assert list(iter_json_objects(text)) == [{"a": {"b": 2}}]

    def test_fenced_objects_come_before_bare_ones(self):
        text = '{"bare": true} then\n```json\n{"fenced": true}\n```'
        assert list(iter_json_objects(text)) == [{"fenced": True}, {"bare": True}]

    def test_object_inside_fence_is_not_yielded_twice(self):
        text = "```json\n{\"a\": 1}\n```"
        assert len(list(iter_json_objects(text))) == 1

    def test_stray_braces_are_skipped(self):
        text = 'Use {curly} braces, then {"ok": 1}'
        assert list(iter_json_objects(text)) == [{"ok": 1}]

    def test_empty_text(self):
        assert list(iter_json_objects("")) == []

    def test_arrays_are_ignored(self):
        assert list(iter_json_objects("```json\n[1, 2]\n```")) == []


# ============================================================
# SCOPE CHANGE EXTRACTION
# ============================================================

class TestExtractScopeChange:

    def test_fenced_scope_change(self):
        text = (
            "Adding a blog is straightforward.\n\n"
            f"```json\n{json.dumps(scope_change())}\n```\n"
            "Let me know if you want to proceed."
        )

        payload = extract_scope_change(text)

        assert isinstance(payload, ScopeChangePayload)
        assert payload.delta_cost == 5000
        assert payload.delta_weeks == 2
        assert payload.changes == ["Blog listing page", "Blog post template"]

    def test_javascript_fenced_scope_change(self):
        text = (
            "Here is the impact:\n"
            f"```javascript\nconst change = {json.dumps(scope_change())};\n```"
        )

        payload = extract_scope_change(text)

        assert payload is not None
        assert payload.summary == scope_change()["summary"]
        assert payload.delta_cost == 5000

    def test_bare_scope_change(self):
        text = f"Here is the proposal: {json.dumps(scope_change(deltaCost=-1250.5, deltaWeeks=-1.5))} Thanks!"

        payload = extract_scope_change(text)

        assert payload is not None
        assert payload.delta_cost == -1250.5
        assert payload.delta_weeks == -1.5

    def test_prose_only_returns_none(self):
        assert extract_scope_change("Sure, that sounds reasonable, no extra cost.") is None

    def test_malformed_json_returns_none(self):
        text = '```json\n{"type": "scope_change", "summary": "Oops", \n```'
        assert extract_scope_change(text) is None

    def test_numeric_strings_are_rejected(self):
        text = json.dumps(scope_change(deltaCost="5000"))
        assert extract_scope_change(text) is None

    def test_booleans_are_rejected(self):
        text = json.dumps(scope_change(deltaWeeks=True))
        assert extract_scope_change(text) is None

    def test_nan_is_rejected(self):
        text = '{"type": "scope_change", "summary": "x", "changes": [], ' \
               '"deltaCost": NaN, "deltaWeeks": 1, "reasoning": "r"}'
        assert extract_scope_change(text) is None

    def test_missing_field_is_rejected(self):
        payload = scope_change()
        del payload["reasoning"]
        assert extract_scope_change(json.dumps(payload)) is None

    def test_other_object_types_are_ignored(self):
        text = json.dumps({"type": "question", "summary": "Not a change"})
        assert extract_scope_change(text) is None

    def test_first_valid_candidate_wins(self):
        invalid = json.dumps(scope_change(deltaCost="lots"))
        valid = json.dumps(scope_change(summary="Valid one"))
        text = f"First try: {invalid}\nCorrected: {valid}"

        payload = extract_scope_change(text)

        assert payload is not None
        assert payload.summary == "Valid one"

    def test_to_document_uses_wire_names(self):
        payload = extract_scope_change(json.dumps(scope_change()))

        document = payload.to_document()

        assert document["deltaCost"] == 5000
        assert document["deltaWeeks"] == 2
        assert document["type"] == "scope_change"
        assert "delta_cost" not in document


# ============================================================
# TIMELINE GENERATION OUTPUT
# ============================================================

def timeline_document(**overrides):
    document = {
        "phases": [
            {"id": "phase-1", "name": "Discovery", "duration_weeks": 2,
             "tasks": ["Interviews"], "dependencies": []},
            {"id": "phase-2", "name": "Build", "duration_weeks": 6,
             "tasks": ["Pages"], "dependencies": ["phase-1"]},
        ],
        "total_weeks": 8,
        "total_hours": 320,
        "total_cost": 48000,
        "milestones": [{"name": "Launch", "week": 8}],
        "risks": [],
    }
    document.update(overrides)
    return document


class TestTimelineGenerationOutput:

    def test_valid_timeline(self):
        text = f"```json\n{json.dumps(timeline_document())}\n```"

        timeline = extract_structured_payload(text, TimelineGenerationOutput)

        assert timeline is not None
        assert [phase.id for phase in timeline.phases] == ["phase-1", "phase-2"]
        assert timeline.total_cost == 48000

    def test_legacy_phase_shape_is_rejected(self):
        legacy = timeline_document(phases=[
            {"name": "Discovery", "description": "Kickoff",
             "estimatedHours": 80, "estimatedCost": 12000, "deliverables": ["Brief"]},
        ])
        assert extract_structured_payload(json.dumps(legacy), TimelineGenerationOutput) is None

    def test_unknown_dependency_is_rejected(self):
        document = timeline_document()
        document["phases"][1]["dependencies"] = ["phase-9"]
        assert extract_structured_payload(json.dumps(document), TimelineGenerationOutput) is None

    def test_duplicate_phase_ids_are_rejected(self):
        document = timeline_document()
        document["phases"][1]["id"] = "phase-1"
        document["phases"][1]["dependencies"] = []
        assert extract_structured_payload(json.dumps(document), TimelineGenerationOutput) is None

    @pytest.mark.parametrize("field", ["phases", "total_weeks"])
    def test_required_fields(self, field):
        document = timeline_document()
        del document[field]
        assert extract_structured_payload(json.dumps(document), TimelineGenerationOutput) is None
