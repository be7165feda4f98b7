import sys
from pathlib import Path

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

sys.path.append(str(Path(__file__).resolve().parents[1]))

from spellbook import create_app
from spellbook.config import TestConfig
from spellbook.extensions import db
from spellbook.models import Chapter, EbookParameters, Message, Project
from spellbook.store import EntityStore


@pytest.fixture
def store():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield EntityStore.from_extension()
    db.session.remove()
    db.drop_all()
    ctx.pop()


def test_create_reads_back_server_assigned_fields(store):
    project = store.projects.create("  Moonlit Atlas  ", description="A travelogue")

    assert project is not None
    assert project.id is not None
    assert project.name == "Moonlit Atlas"
    assert project.description == "A travelogue"
    assert project.created_at is not None
    assert project.updated_at is not None


def test_create_rejects_blank_name(store):
    assert store.projects.create("   ") is None
    assert store.projects.list() == []


def test_optional_fields_are_absent_not_empty(store):
    project = store.projects.create("Quiet Harbor", description="   ")

    assert project.description is None
    assert project.parameters is None


def test_parameters_round_trip_without_blank_fields(store):
    project = store.projects.create(
        "Clockwork Orchard",
        parameters={"genre": "Fantasy", "tone": "  ", "continue_narrative": True},
    )

    assert project.ebook_parameters == EbookParameters(genre="Fantasy", continue_narrative=True)
    assert project.to_dict()["parameters"] == {"genre": "Fantasy", "continue_narrative": True}


def test_create_rejects_parameters_with_wrong_types(store):
    assert store.projects.create("Bad Params", parameters={"genre": 7}) is None
    assert store.projects.create("Bad Params", parameters=["genre"]) is None


def test_list_returns_newest_first(store):
    first = store.projects.create("First")
    second = store.projects.create("Second")

    assert [project.id for project in store.projects.list()] == [second.id, first.id]


def test_update_is_sparse(store):
    project = store.projects.create("Draft", description="Keep me", parameters={"genre": "Mystery"})

    updated = store.projects.update(project.id, name="Final")

    assert updated.name == "Final"
    assert updated.description == "Keep me"
    assert updated.ebook_parameters.genre == "Mystery"


def test_empty_update_returns_entity_unchanged(store):
    project = store.projects.create("Stable", description="Unchanged")
    before = project.to_dict()

    after = store.projects.update(project.id)

    assert after.to_dict() == before


def test_update_rejects_unknown_fields_and_blank_name(store):
    project = store.projects.create("Guarded")

    assert store.projects.update(project.id, owner="someone") is None
    assert store.projects.update(project.id, name="  ") is None
    assert store.projects.get(project.id).name == "Guarded"


def test_update_can_clear_description(store):
    project = store.projects.create("Clearable", description="Temporary")

    assert store.projects.update(project.id, description=None).description is None


def test_delete_cascades_to_chapters_and_messages(store):
    project = store.projects.create("Doomed")
    chapter = store.chapters.create(project.id, "One", "First chapter")
    store.messages.add(project.id, "user", "hello")
    store.messages.add(project.id, "user", "about chapter one", chapter_id=chapter.id)

    assert store.projects.delete(project.id) is True

    assert store.projects.get(project.id) is None
    assert Chapter.query.count() == 0
    assert Message.query.count() == 0


def test_delete_missing_project_succeeds(store):
    assert store.projects.delete(4242) is True


def test_store_errors_become_sentinels(store, monkeypatch):
    def broken_commit(self):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(Session, "commit", broken_commit)

    assert store.projects.create("Unsaved") is None
    assert Project.query.count() == 0


def test_corrupt_parameters_blob_is_treated_as_missing(store):
    project = store.projects.create("Corrupted")
    project.parameters = "{not json"
    db.session.commit()

    assert store.projects.get(project.id).ebook_parameters is None
    assert store.projects.get(project.id).to_dict()["parameters"] is None


def test_non_string_name_is_rejected(store):
    assert store.projects.create(42) is None
    project = store.projects.create("Named")

    assert store.projects.update(project.id, name=["Renamed"]) is None
    assert store.projects.get(project.id).name == "Named"
