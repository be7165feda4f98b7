import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from spellbook import create_app
from spellbook.config import TestConfig
from spellbook.extensions import db
from spellbook.services import LLMDispatcher, generate_chapter_sequence
from spellbook.store import EntityStore


@pytest.fixture
def app_ctx():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def store(app_ctx):
    return EntityStore.from_extension()


@pytest.fixture
def dispatcher(app_ctx, store):
    return LLMDispatcher.from_app(app_ctx, store)


def _three_chapters(store, parameters=None):
    project = store.projects.create("Trilogy", parameters=parameters)
    chapters = [
        store.chapters.create(project.id, "One", "Beginning"),
        store.chapters.create(project.id, "Two", "Middle"),
        store.chapters.create(project.id, "Three", "End"),
    ]
    return project, [chapter.id for chapter in chapters]


def test_provider_failure_midway_keeps_later_chapters(dispatcher, store, monkeypatch):
    project, (first_id, second_id, third_id) = _three_chapters(store)

    def fake_prompt(prompt):
        return None if '"Two"' in prompt else "Generated"

    monkeypatch.setattr(dispatcher, "process_prompt", fake_prompt)

    result = generate_chapter_sequence(dispatcher, project.id, second_id)

    assert result.found
    assert result.failed == [second_id]
    assert result.completed == [third_id]
    assert result.success is False
    assert store.chapters.get(first_id).content is None
    assert store.chapters.get(second_id).content is None
    assert store.chapters.get(third_id).content == "Generated"


def test_all_steps_succeeding_reports_success(dispatcher, store, monkeypatch):
    project, chapter_ids = _three_chapters(store)
    monkeypatch.setattr(dispatcher, "process_prompt", lambda prompt: "Text")

    result = generate_chapter_sequence(dispatcher, project.id, chapter_ids[0])

    assert result.success
    assert result.completed == chapter_ids
    assert all(store.chapters.get(cid).content == "Text" for cid in chapter_ids)


def test_unknown_start_chapter_or_project_fails(dispatcher, store, monkeypatch):
    project, _ = _three_chapters(store)
    other = store.projects.create("Other")
    foreign = store.chapters.create(other.id, "Foreign", "Not in trilogy")
    prompts = []
    monkeypatch.setattr(dispatcher, "process_prompt", lambda prompt: prompts.append(prompt) or "Text")

    assert generate_chapter_sequence(dispatcher, project.id, foreign.id).found is False
    assert generate_chapter_sequence(dispatcher, 999, foreign.id).success is False
    assert prompts == []


def test_generated_content_threads_into_next_prompt(dispatcher, store, monkeypatch):
    project, chapter_ids = _three_chapters(store, parameters={"continue_narrative": True})
    prompts = []

    def fake_prompt(prompt):
        prompts.append(prompt)
        return f"Content #{len(prompts)}"

    monkeypatch.setattr(dispatcher, "process_prompt", fake_prompt)

    result = generate_chapter_sequence(dispatcher, project.id, chapter_ids[0])

    assert result.success
    assert "Previous Chapter Content" not in prompts[0]
    assert "Content #1..." in prompts[1]
    assert "Content #2..." in prompts[2]


def test_missing_previous_content_is_only_a_warning(dispatcher, store, monkeypatch, caplog):
    project, chapter_ids = _three_chapters(store, parameters={"continue_narrative": True})
    monkeypatch.setattr(dispatcher, "process_prompt", lambda prompt: "Text")

    result = generate_chapter_sequence(dispatcher, project.id, chapter_ids[1])

    assert result.success
    assert "has no content" in caplog.text


def test_save_failure_is_recorded(dispatcher, store, monkeypatch):
    project, chapter_ids = _three_chapters(store)
    monkeypatch.setattr(dispatcher, "process_prompt", lambda prompt: "Text")
    monkeypatch.setattr(
        dispatcher,
        "handle_chapter_content_response",
        lambda response, chapter_id: chapter_id != chapter_ids[0],
    )

    result = generate_chapter_sequence(dispatcher, project.id, chapter_ids[0])

    assert result.failed == [chapter_ids[0]]
    assert result.completed == chapter_ids[1:]
    assert not result.success
