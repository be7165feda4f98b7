"""Database helper utilities for ensuring schema consistency."""
from __future__ import annotations

import sqlite3
from typing import Iterable, Set

from sqlalchemy import event, inspect, text
from sqlalchemy.engine import Engine

from .extensions import db


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    # SQLite ships with foreign key enforcement disabled per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _get_column_names(engine: Engine, table_name: str) -> Set[str]:
    inspector = inspect(engine)
    return {column["name"] for column in inspector.get_columns(table_name)}


def ensure_database_schema(engine: Engine) -> None:
    """Ensure that essential schema updates are applied.

    Runs on every application start and after a database blob is restored.
    It creates any missing tables and adds the ``projects.parameters``
    column, which older project files were saved without.
    """

    # Import locally so every model is registered on the metadata.
    from . import models  # noqa: F401

    inspector = inspect(engine)
    table_names: Iterable[str] = inspector.get_table_names()

    missing = [table for name, table in db.metadata.tables.items() if name not in table_names]
    if missing:
        db.metadata.create_all(bind=engine, tables=missing)

    if "projects" in table_names:
        project_columns = _get_column_names(engine, "projects")
        if "parameters" not in project_columns:
            with engine.begin() as connection:
                connection.execute(text("ALTER TABLE projects ADD COLUMN parameters TEXT"))
