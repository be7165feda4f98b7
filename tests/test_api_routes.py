import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from spellbook import create_app
from spellbook.config import TestConfig
from spellbook.extensions import db
from spellbook.providers import OpenAIProvider
from spellbook.services import LLMDispatcher
from spellbook.store import ChapterStore

PLAN = "Chapter 1: Arrival\nDescription: The crew lands.\nChapter 2: Contact\nDescription: Strangers meet."


@pytest.fixture
def app_instance(tmp_path):
    app = create_app(TestConfig)
    app.instance_path = str(tmp_path / "instance")
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture
def replies(monkeypatch):
    queue = []

    def fake_completion(self, messages, config):
        return queue.pop(0) if queue else None

    monkeypatch.setattr(OpenAIProvider, "get_chat_completion", fake_completion)
    return queue


def _create_project(client, **payload):
    payload.setdefault("name", "Harbor Lights")
    response = client.post("/api/projects", json=payload)
    assert response.status_code == 201
    return response.get_json()["project"]


def _create_chapter(client, project_id, title):
    response = client.post(
        f"/api/projects/{project_id}/chapters",
        json={"title": title, "description": f"{title} description"},
    )
    assert response.status_code == 201
    return response.get_json()["chapter"]


def test_project_crud(client):
    project = _create_project(client, description="Coastal mystery", parameters={"genre": "Mystery"})
    assert project["parameters"] == {"genre": "Mystery"}

    listed = client.get("/api/projects").get_json()["projects"]
    assert [p["id"] for p in listed] == [project["id"]]

    patched = client.patch(f"/api/projects/{project['id']}", json={"name": "Harbor Nights"})
    assert patched.get_json()["project"]["name"] == "Harbor Nights"
    assert patched.get_json()["project"]["description"] == "Coastal mystery"

    assert client.delete(f"/api/projects/{project['id']}").status_code == 204
    assert client.get(f"/api/projects/{project['id']}").status_code == 404


def test_project_validation_errors(client):
    assert client.post("/api/projects", json={"name": " "}).status_code == 400
    project = _create_project(client)
    assert client.patch(f"/api/projects/{project['id']}", json={"owner": "x"}).status_code == 400
    assert client.patch("/api/projects/999", json={"name": "Ghost"}).status_code == 404


def test_malformed_fields_are_rejected_not_crashed(client):
    project = _create_project(client)
    chapter = _create_chapter(client, project["id"], "A")
    sibling = _create_chapter(client, project["id"], "B")

    chapters_url = f"/api/projects/{project['id']}/chapters"
    assert client.post(chapters_url, json={"title": 5, "description": "d"}).status_code == 400
    assert client.post("/api/projects", json={"name": 7}).status_code == 400
    assert client.patch(f"/api/projects/{project['id']}", json={"project_id": 3}).status_code == 400
    assert client.patch(f"/api/projects/{project['id']}", json={"name": ["x"]}).status_code == 400
    assert client.patch(f"/api/chapters/{chapter['id']}", json={"chapter_id": 9}).status_code == 400
    assert client.patch(f"/api/chapters/{chapter['id']}", json={"title": 5}).status_code == 400
    assert client.patch(f"/api/chapters/{sibling['id']}", json={"order": chapter["order"]}).status_code == 400


def test_chat_rejects_chapter_from_another_project(client, replies):
    project = _create_project(client)
    other = _create_project(client, name="Elsewhere")
    foreign = _create_chapter(client, other["id"], "Foreign")
    replies.append("unused")

    response = client.post(
        f"/api/projects/{project['id']}/chat",
        json={"content": "Hello?", "chapter_id": foreign["id"]},
    )

    assert response.status_code == 400
    assert replies == ["unused"]
    assert client.get(f"/api/projects/{project['id']}/messages").get_json()["messages"] == []


def test_chapter_routes_and_reorder(client):
    project = _create_project(client)
    a = _create_chapter(client, project["id"], "A")
    b = _create_chapter(client, project["id"], "B")
    c = _create_chapter(client, project["id"], "C")

    response = client.post(
        f"/api/projects/{project['id']}/chapters/order",
        json={"chapter_ids": [c["id"], a["id"], b["id"]]},
    )
    assert response.status_code == 200
    assert [ch["title"] for ch in response.get_json()["chapters"]] == ["C", "A", "B"]

    assert client.delete(f"/api/chapters/{a['id']}").status_code == 204
    orders = [ch["order"] for ch in client.get(f"/api/projects/{project['id']}/chapters").get_json()["chapters"]]
    assert orders == [0, 2]

    renumbered = client.post(f"/api/projects/{project['id']}/chapters/renumber").get_json()
    assert [ch["order"] for ch in renumbered["chapters"]] == [0, 1]


def test_reorder_rejects_incomplete_or_non_integer_lists(client):
    project = _create_project(client)
    a = _create_chapter(client, project["id"], "A")
    _create_chapter(client, project["id"], "B")
    url = f"/api/projects/{project['id']}/chapters/order"

    assert client.post(url, json={"chapter_ids": [a["id"]]}).status_code == 400
    assert client.post(url, json={"chapter_ids": ["first", "second"]}).status_code == 400
    assert client.post(url, json={}).status_code == 400


def test_reorder_partial_failure_reports_failed_item(client, monkeypatch):
    project = _create_project(client)
    a = _create_chapter(client, project["id"], "A")
    b = _create_chapter(client, project["id"], "B")
    original = ChapterStore._apply_order

    def flaky_apply(self, chapter_id, new_order):
        if chapter_id == a["id"]:
            return False
        return original(self, chapter_id, new_order)

    monkeypatch.setattr(ChapterStore, "_apply_order", flaky_apply)

    response = client.post(
        f"/api/projects/{project['id']}/chapters/order",
        json={"chapter_ids": [b["id"], a["id"]]},
    )

    assert response.status_code == 500
    body = response.get_json()
    assert body["applied"] == [b["id"]]
    assert body["failed"] == a["id"]
    assert "Please retry." in body["error"]


def test_messages_routes(client):
    project = _create_project(client)
    chapter = _create_chapter(client, project["id"], "A")
    url = f"/api/projects/{project['id']}/messages"

    assert client.post(url, json={"content": "general"}).status_code == 201
    assert client.post(url, json={"content": "scoped", "chapter_id": chapter["id"]}).status_code == 201
    assert client.post(url, json={"role": "narrator", "content": "nope"}).status_code == 400

    scoped = client.get(f"{url}?chapter_id={chapter['id']}").get_json()["messages"]
    assert [m["content"] for m in scoped] == ["scoped"]

    assert client.delete(url).status_code == 204
    assert client.get(url).get_json()["messages"] == []


def test_plan_generation_route(client, replies):
    project = _create_project(client)
    replies.append(PLAN)

    response = client.post(f"/api/projects/{project['id']}/plan", json={"replace_existing": True})

    assert response.status_code == 200
    assert [c["title"] for c in response.get_json()["chapters"]] == ["Arrival", "Contact"]


def test_provider_failure_maps_to_bad_gateway(client, replies):
    project = _create_project(client)
    chapter = _create_chapter(client, project["id"], "A")

    assert client.post(f"/api/projects/{project['id']}/plan").status_code == 502
    assert client.post(f"/api/chapters/{chapter['id']}/generate").status_code == 502
    response = client.post(f"/api/projects/{project['id']}/chat", json={"content": "Hello?"})
    assert response.status_code == 502
    assert "Please retry." in response.get_json()["error"]


def test_generate_and_sequence_routes(client, replies):
    project = _create_project(client)
    first = _create_chapter(client, project["id"], "A")
    second = _create_chapter(client, project["id"], "B")

    replies.append("First draft")
    generated = client.post(f"/api/chapters/{first['id']}/generate")
    assert generated.get_json()["chapter"]["content"] == "First draft"

    replies.extend(["Rewrite A", "Draft B"])
    sequence = client.post(f"/api/chapters/{first['id']}/generate-sequence")
    assert sequence.status_code == 200
    body = sequence.get_json()
    assert body["completed"] == [first["id"], second["id"]]
    assert [c["content"] for c in body["chapters"]] == ["Rewrite A", "Draft B"]

    assert client.post("/api/chapters/999/generate-sequence").status_code == 404


def test_chat_route_returns_reply_and_history(client, replies):
    project = _create_project(client)
    replies.append("Try a storm.")

    response = client.post(f"/api/projects/{project['id']}/chat", json={"content": "Ideas?"})

    assert response.status_code == 200
    body = response.get_json()
    assert body["reply"]["content"] == "Try a storm."
    assert [m["role"] for m in body["messages"]] == ["user", "assistant"]
    assert client.post(f"/api/projects/{project['id']}/chat", json={"content": "  "}).status_code == 400
    assert client.post(f"/api/projects/{project['id']}/chat", json={"content": 5}).status_code == 400


def test_llm_routes(client, monkeypatch):
    settings = client.get("/api/llm/settings").get_json()
    assert settings["provider"] == "openai"
    assert settings["model"] == "gpt-3.5-turbo"
    assert settings["api_key"] == "sk-t…test"

    monkeypatch.setattr(LLMDispatcher, "list_models", lambda self: ["gpt-4o"])
    assert client.get("/api/llm/models").get_json() == {"models": ["gpt-4o"]}

    monkeypatch.setattr(LLMDispatcher, "list_models", lambda self: None)
    assert client.get("/api/llm/models").status_code == 502

    monkeypatch.setattr(LLMDispatcher, "test_connection", lambda self: True)
    assert client.post("/api/llm/test").get_json() == {"ok": True}


def test_exports(client):
    project = _create_project(client, description="Lighthouse keepers")
    _create_chapter(client, project["id"], "A")

    document = client.get(f"/api/projects/{project['id']}/export").get_json()
    assert document["project"]["name"] == "Harbor Lights"
    assert len(document["chapters"]) == 1

    text = client.get(f"/api/projects/{project['id']}/export.txt")
    assert text.status_code == 200
    assert text.mimetype == "text/plain"
    assert text.get_data(as_text=True).startswith("Harbor Lights\n\nLighthouse keepers\n")
    text.close()


def test_backup_round_trip(client):
    project = _create_project(client)
    blob = client.get("/api/backup").get_data()

    client.delete(f"/api/projects/{project['id']}")
    assert client.post("/api/backup", data=b"garbage").status_code == 400

    assert client.post("/api/backup", data=blob).status_code == 200
    assert [p["name"] for p in client.get("/api/projects").get_json()["projects"]] == ["Harbor Lights"]


def test_unexpected_errors_are_logged_and_reported(client, monkeypatch, caplog):
    def explode(self):
        raise RuntimeError("boom")

    monkeypatch.setattr(LLMDispatcher, "test_connection", explode)

    response = client.post("/api/llm/test")

    assert response.status_code == 500
    assert "Unexpected error" in caplog.text
