import sys
from pathlib import Path

import pytest
from sqlalchemy import text

sys.path.append(str(Path(__file__).resolve().parents[1]))

from spellbook import create_app
from spellbook.config import TestConfig
from spellbook.extensions import db
from spellbook.store import EntityStore
from spellbook.store.backup import SQLITE_HEADER


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


def _snapshot(store):
    projects = [p.to_dict() for p in store.projects.list()]
    chapters = [c.to_dict() for p in projects for c in store.chapters.list_for_project(p["id"])]
    messages = [m.to_dict() for p in projects for m in store.messages.list_for_project(p["id"])]
    return projects, chapters, messages


def test_export_then_load_restores_identical_state(store):
    project = store.projects.create("Glass Tide", description="Sea story", parameters={"genre": "Drama"})
    first = store.chapters.create(project.id, "Shore", "Arrival", content="Waves.")
    store.chapters.create(project.id, "Deep", "Descent")
    store.messages.add(project.id, "user", "Make it darker", chapter_id=first.id)
    expected = _snapshot(store)

    blob = store.export_database()
    assert blob.startswith(SQLITE_HEADER)

    store.projects.delete(project.id)
    store.projects.create("Replacement")
    assert _snapshot(store) != expected

    assert store.load_database(blob) is True
    assert _snapshot(store) == expected


def test_load_rejects_non_database_blob_and_keeps_state(store):
    project = store.projects.create("Survivor")

    assert store.load_database(b"definitely not sqlite") is False
    assert store.projects.get(project.id).name == "Survivor"


def test_load_adds_columns_missing_from_older_files(store):
    store.projects.create("Legacy")
    blob = store.export_database()

    with db.engine.begin() as connection:
        connection.execute(text("ALTER TABLE projects DROP COLUMN parameters"))
    old_blob = store.export_database()
    db.session.remove()

    assert store.load_database(old_blob) is True
    columns = {row[1] for row in db.session.execute(text("PRAGMA table_info(projects)"))}
    assert "parameters" in columns

    assert store.load_database(blob) is True
    assert [p.name for p in store.projects.list()] == ["Legacy"]
