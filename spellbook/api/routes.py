from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from flask import Response, current_app, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from ..services import (
    ChapterOrderView,
    LLMDispatcher,
    LLMSettings,
    ReorderError,
    TextExportError,
    generate_chapter_sequence,
)
from ..services.exporting import export_project_document, export_project_to_txt
from ..store import EntityStore
from ..store.chapters import UPDATABLE_FIELDS as CHAPTER_FIELDS
from ..store.projects import UPDATABLE_FIELDS as PROJECT_FIELDS
from . import bp

RETRY_HINT = "Please retry."


def _store() -> EntityStore:
    return EntityStore.from_extension()


def _dispatcher(store: EntityStore) -> LLMDispatcher:
    return LLMDispatcher.from_app(current_app, store)


def _payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _error(message: str, status: int, **extra: Any):
    body: Dict[str, Any] = {"error": message}
    body.update(extra)
    return jsonify(body), status


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("Expected an integer.")
    return int(value)


# ---------------- projects ----------------
@bp.route("/projects", methods=["GET"])
def list_projects():
    store = _store()
    return jsonify({"projects": [project.to_dict() for project in store.projects.list()]})


@bp.route("/projects", methods=["POST"])
def create_project():
    payload = _payload()
    project = _store().projects.create(
        payload.get("name") or "",
        description=payload.get("description"),
        parameters=payload.get("parameters"),
    )
    if project is None:
        return _error("A project needs a name and valid parameters.", 400)
    current_app.logger.info("Created project %s.", project.id)
    return jsonify({"project": project.to_dict()}), 201


@bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id: int):
    store = _store()
    project = store.projects.get(project_id)
    if project is None:
        return _error("We couldn't find that project.", 404)
    return jsonify(
        {
            "project": project.to_dict(),
            "chapters": [chapter.to_dict() for chapter in store.chapters.list_for_project(project_id)],
        }
    )


@bp.route("/projects/<int:project_id>", methods=["PATCH"])
def update_project(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)
    updates = _payload()
    if set(updates) - PROJECT_FIELDS:
        return _error("The project could not be updated. Check the submitted fields.", 400)
    project = store.projects.update(project_id, **updates)
    if project is None:
        return _error("The project could not be updated. Check the submitted fields.", 400)
    return jsonify({"project": project.to_dict()})


@bp.route("/projects/<int:project_id>", methods=["DELETE"])
def delete_project(project_id: int):
    if not _store().projects.delete(project_id):
        return _error(f"The project could not be deleted. {RETRY_HINT}", 500)
    return "", 204


@bp.route("/projects/<int:project_id>/export", methods=["GET"])
def export_project(project_id: int):
    store = _store()
    project = store.projects.get(project_id)
    if project is None:
        return _error("We couldn't find that project.", 404)
    document = export_project_document(
        project,
        store.chapters.list_for_project(project_id),
        store.messages.list_for_project(project_id),
    )
    return jsonify(document)


@bp.route("/projects/<int:project_id>/export.txt", methods=["GET"])
def export_project_txt(project_id: int):
    store = _store()
    project = store.projects.get(project_id)
    if project is None:
        return _error("We couldn't find that project.", 404)

    output_path = Path(current_app.instance_path) / "exports" / f"project-{project_id}.txt"
    try:
        txt_path = export_project_to_txt(
            project,
            store.chapters.list_for_project(project_id),
            output_path=output_path,
        )
    except TextExportError as exc:
        current_app.logger.error("Text export of project %s failed: %s", project_id, exc)
        return _error(str(exc), 500)
    return send_file(txt_path, mimetype="text/plain", as_attachment=True, download_name=txt_path.name)


# ---------------- chapters ----------------
@bp.route("/projects/<int:project_id>/chapters", methods=["GET"])
def list_chapters(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)
    return jsonify({"chapters": [c.to_dict() for c in store.chapters.list_for_project(project_id)]})


@bp.route("/projects/<int:project_id>/chapters", methods=["POST"])
def create_chapter(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)
    payload = _payload()
    chapter = store.chapters.create(
        project_id,
        payload.get("title") or "",
        payload.get("description") or "",
        payload.get("content"),
    )
    if chapter is None:
        return _error("A chapter needs a title and a description.", 400)
    return jsonify({"chapter": chapter.to_dict()}), 201


@bp.route("/chapters/<int:chapter_id>", methods=["GET"])
def get_chapter(chapter_id: int):
    chapter = _store().chapters.get(chapter_id)
    if chapter is None:
        return _error("We couldn't find that chapter.", 404)
    return jsonify({"chapter": chapter.to_dict()})


@bp.route("/chapters/<int:chapter_id>", methods=["PATCH"])
def update_chapter(chapter_id: int):
    store = _store()
    if store.chapters.get(chapter_id) is None:
        return _error("We couldn't find that chapter.", 404)
    updates = _payload()
    if set(updates) - CHAPTER_FIELDS:
        return _error("The chapter could not be updated. Check the submitted fields.", 400)
    chapter = store.chapters.update(chapter_id, **updates)
    if chapter is None:
        return _error("The chapter could not be updated. Check the submitted fields.", 400)
    return jsonify({"chapter": chapter.to_dict()})


@bp.route("/chapters/<int:chapter_id>", methods=["DELETE"])
def delete_chapter(chapter_id: int):
    if not _store().chapters.delete(chapter_id):
        return _error(f"The chapter could not be deleted. {RETRY_HINT}", 500)
    return "", 204


def _reorder_response(store: EntityStore, project_id: int, result):
    chapters: List[Dict[str, Any]] = [c.to_dict() for c in store.chapters.list_for_project(project_id)]
    body = {
        "applied": result.applied,
        "failed": result.failed,
        "skipped": result.skipped,
        "chapters": chapters,
    }
    if not result.ok:
        return _error(f"The chapter order could not be saved. {RETRY_HINT}", 500, **body)
    return jsonify(body)


@bp.route("/projects/<int:project_id>/chapters/order", methods=["POST"])
def reorder_chapters(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)

    raw_ids = _payload().get("chapter_ids")
    if not isinstance(raw_ids, list):
        return _error("Provide the chapter ids in their new order.", 400)
    try:
        chapter_ids = [_optional_int(value) for value in raw_ids]
        view = ChapterOrderView(store.chapters, project_id)
        result = view.reorder(chapter_ids)
    except (TypeError, ValueError):
        return _error("Chapter ids must be integers.", 400)
    except ReorderError as exc:
        return _error(str(exc), 400)
    return _reorder_response(store, project_id, result)


@bp.route("/projects/<int:project_id>/chapters/renumber", methods=["POST"])
def renumber_chapters(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)
    return _reorder_response(store, project_id, store.chapters.renumber(project_id))


# ---------------- messages ----------------
@bp.route("/projects/<int:project_id>/messages", methods=["GET"])
def list_messages(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)
    chapter_id = request.args.get("chapter_id", type=int)
    messages = store.messages.list_for_project(project_id, chapter_id)
    return jsonify({"messages": [message.to_dict() for message in messages]})


@bp.route("/projects/<int:project_id>/messages", methods=["POST"])
def add_message(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)
    payload = _payload()
    try:
        chapter_id = _optional_int(payload.get("chapter_id"))
    except (TypeError, ValueError):
        return _error("chapter_id must be an integer.", 400)
    message = store.messages.add(
        project_id,
        payload.get("role") or "user",
        payload.get("content"),
        chapter_id,
    )
    if message is None:
        return _error("The message could not be stored. Check its role, content and chapter.", 400)
    return jsonify({"message": message.to_dict()}), 201


@bp.route("/projects/<int:project_id>/messages", methods=["DELETE"])
def clear_messages(project_id: int):
    chapter_id = request.args.get("chapter_id", type=int)
    if not _store().messages.clear(project_id, chapter_id):
        return _error(f"The messages could not be cleared. {RETRY_HINT}", 500)
    return "", 204


# ---------------- generation ----------------
@bp.route("/projects/<int:project_id>/plan", methods=["POST"])
def generate_plan(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)
    replace_existing = bool(_payload().get("replace_existing", False))

    if not _dispatcher(store).generate_plan(project_id, replace_existing=replace_existing):
        return _error(f"The chapter plan could not be generated. {RETRY_HINT}", 502)
    return jsonify({"chapters": [c.to_dict() for c in store.chapters.list_for_project(project_id)]})


@bp.route("/chapters/<int:chapter_id>/generate", methods=["POST"])
def generate_chapter(chapter_id: int):
    store = _store()
    chapter = store.chapters.get(chapter_id)
    if chapter is None:
        return _error("We couldn't find that chapter.", 404)
    project_id = chapter.project_id

    content = _dispatcher(store).generate_chapter_content(project_id, chapter_id)
    if content is None:
        return _error(f"The chapter content could not be generated. {RETRY_HINT}", 502)
    return jsonify({"chapter": store.chapters.get(chapter_id).to_dict()})


@bp.route("/chapters/<int:chapter_id>/generate-sequence", methods=["POST"])
def generate_sequence(chapter_id: int):
    store = _store()
    chapter = store.chapters.get(chapter_id)
    if chapter is None:
        return _error("We couldn't find that chapter.", 404)
    project_id = chapter.project_id

    result = generate_chapter_sequence(_dispatcher(store), project_id, chapter_id)
    body = {
        "completed": result.completed,
        "failed": result.failed,
        "chapters": [c.to_dict() for c in store.chapters.list_for_project(project_id)],
    }
    if not result.success:
        return _error(f"Some chapters could not be generated. {RETRY_HINT}", 502, **body)
    return jsonify(body)


@bp.route("/projects/<int:project_id>/chat", methods=["POST"])
def chat(project_id: int):
    store = _store()
    if store.projects.get(project_id) is None:
        return _error("We couldn't find that project.", 404)
    payload = _payload()
    content = payload.get("content")
    content = content.strip() if isinstance(content, str) else ""
    if not content:
        return _error("Write a message first.", 400)
    try:
        chapter_id = _optional_int(payload.get("chapter_id"))
    except (TypeError, ValueError):
        return _error("chapter_id must be an integer.", 400)
    if chapter_id is not None:
        chapter = store.chapters.get(chapter_id)
        if chapter is None or chapter.project_id != project_id:
            return _error("That chapter does not belong to this project.", 400)

    reply = _dispatcher(store).send_chat_message(project_id, content, chapter_id)
    if reply is None:
        return _error(f"The assistant did not respond. {RETRY_HINT}", 502)
    messages = store.messages.list_for_project(project_id, chapter_id)
    return jsonify({"reply": reply.to_dict(), "messages": [m.to_dict() for m in messages]})


# ---------------- llm ----------------
@bp.route("/llm/settings", methods=["GET"])
def llm_settings():
    return jsonify(LLMSettings.from_config(current_app.config).to_public_dict())


@bp.route("/llm/models", methods=["GET"])
def llm_models():
    models = _dispatcher(_store()).list_models()
    if models is None:
        return _error(f"Could not list models from the configured provider. {RETRY_HINT}", 502)
    return jsonify({"models": models})


@bp.route("/llm/test", methods=["POST"])
def llm_test():
    return jsonify({"ok": _dispatcher(_store()).test_connection()})


# ---------------- backup ----------------
@bp.route("/backup", methods=["GET"])
def download_backup():
    data = _store().export_database()
    if data is None:
        return _error(f"The database could not be exported. {RETRY_HINT}", 500)
    return Response(
        data,
        mimetype="application/vnd.sqlite3",
        headers={"Content-Disposition": "attachment; filename=spellbook-backup.db"},
    )


@bp.route("/backup", methods=["POST"])
def restore_backup():
    if not _store().load_database(request.get_data()):
        return _error("The uploaded file is not a valid database backup.", 400)
    current_app.logger.info("Restored database from uploaded backup.")
    return jsonify({"ok": True})


@bp.errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    current_app.logger.exception("Unexpected error while handling %s %s", request.method, request.path)
    return _error(f"Something went wrong. {RETRY_HINT}", 500)
