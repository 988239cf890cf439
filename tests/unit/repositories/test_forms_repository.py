"""
Unit tests for FormRepository.

Tests one form per project, share-token lookup, single submission and the
cascade from a project to its form.
"""

import pytest

from scopeflow.database.exceptions import DatabaseConstraintError
from scopeflow.database.models import ProjectStatusEnum
from scopeflow.database.repositories.forms import FormRepository
from scopeflow.database.repositories.projects import ProjectRepository

QUESTIONS = {"sections": [{"title": "Scope", "questions": [{"id": "pages", "type": "text", "label": "Pages?"}]}]}


@pytest.mark.asyncio
async def test_save_creates_form(seeded):
    form = await FormRepository().save_for_project(seeded.project.id, QUESTIONS, share_token="form-token")

    assert form.share_token == "form-token"
    assert form.submitted_at is None
    assert (await FormRepository().get_for_project(seeded.project.id)).id == form.id


@pytest.mark.asyncio
async def test_save_again_replaces_questions_keeps_token(seeded):
    repo = FormRepository()
    first = await repo.save_for_project(seeded.project.id, QUESTIONS, share_token="form-token")

    replaced = {"sections": [{"title": "Design", "questions": [{"id": "logo", "type": "text", "label": "Logo?"}]}]}
    second = await repo.save_for_project(seeded.project.id, replaced, share_token="ignored-token")

    assert second.id == first.id
    assert second.share_token == "form-token"
    assert second.form_data == replaced


@pytest.mark.asyncio
async def test_save_for_missing_project(seeded):
    with pytest.raises(DatabaseConstraintError):
        await FormRepository().save_for_project("missing", QUESTIONS, share_token="form-token")


@pytest.mark.asyncio
async def test_get_by_share_token(seeded):
    await FormRepository().save_for_project(seeded.project.id, QUESTIONS, share_token="form-token")

    form, project = await FormRepository().get_by_share_token("form-token")

    assert form.project_id == seeded.project.id
    assert project.name == "Marketing Site"
    assert await FormRepository().get_by_share_token("nope") is None


@pytest.mark.asyncio
async def test_record_submission_only_once(seeded):
    repo = FormRepository()
    form = await repo.save_for_project(seeded.project.id, QUESTIONS, share_token="form-token")

    assert await repo.record_submission(form.id, {"pages": "5"}, client_email="clara@example.com") is True
    assert await repo.record_submission(form.id, {"pages": "50"}) is False

    stored = await repo.get_for_project(seeded.project.id)
    assert stored.submitted_data == {"pages": "5"}
    assert stored.client_email == "clara@example.com"
    assert stored.submitted_at is not None

    project = await ProjectRepository().get_by_id(seeded.project.id)
    assert project.form_responses == {"pages": "5"}
    assert project.status == ProjectStatusEnum.SCOPING.value


@pytest.mark.asyncio
async def test_delete_project_removes_form(seeded):
    repo = FormRepository()
    await repo.save_for_project(seeded.project.id, QUESTIONS, share_token="form-token")

    assert await ProjectRepository().delete(seeded.project.id) is True

    assert await repo.get_for_project(seeded.project.id) is None
    assert await repo.get_by_share_token("form-token") is None
