"""Whole-database export and restore for SQLite-backed stores."""
from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..db_utils import ensure_database_schema

LOGGER = logging.getLogger(__name__)

SQLITE_HEADER = b"SQLite format 3\x00"


def _driver_connection(raw_connection) -> sqlite3.Connection:
    connection = raw_connection.driver_connection
    if not isinstance(connection, sqlite3.Connection):
        raise TypeError("Database backups are only supported for SQLite engines.")
    return connection


def export_database(engine: Engine) -> Optional[bytes]:
    """Return the complete database file as bytes, or ``None`` on failure."""

    handle, temp_name = tempfile.mkstemp(suffix=".db")
    os.close(handle)
    temp_path = Path(temp_name)
    raw = None
    try:
        raw = engine.raw_connection()
        source = _driver_connection(raw)
        destination = sqlite3.connect(temp_path)
        try:
            source.backup(destination)
        finally:
            destination.close()
        data = temp_path.read_bytes()
    except (SQLAlchemyError, sqlite3.Error, OSError, TypeError) as exc:
        LOGGER.error("Error exporting database: %s", exc)
        return None
    finally:
        if raw is not None:
            raw.close()
        temp_path.unlink(missing_ok=True)

    LOGGER.info("Exported database (%d bytes).", len(data))
    return data


def load_database(engine: Engine, data: bytes) -> bool:
    """Replace the live database with ``data`` and bring its schema up to date.

    The blob is checked before anything is touched, so a rejected blob leaves
    the current contents intact.
    """

    if not isinstance(data, (bytes, bytearray)) or not bytes(data).startswith(SQLITE_HEADER):
        LOGGER.error("Refusing to load data that is not a SQLite database.")
        return False

    handle, temp_name = tempfile.mkstemp(suffix=".db")
    os.close(handle)
    temp_path = Path(temp_name)
    raw = None
    try:
        temp_path.write_bytes(bytes(data))
        source = sqlite3.connect(temp_path)
        try:
            source.execute("SELECT name FROM sqlite_master").fetchall()
            raw = engine.raw_connection()
            source.backup(_driver_connection(raw))
        finally:
            source.close()
    except (SQLAlchemyError, sqlite3.Error, OSError, TypeError) as exc:
        LOGGER.error("Error loading database: %s", exc)
        return False
    finally:
        if raw is not None:
            raw.close()
        temp_path.unlink(missing_ok=True)

    try:
        ensure_database_schema(engine)
    except SQLAlchemyError as exc:
        LOGGER.error("Error upgrading schema of loaded database: %s", exc)
        return False

    LOGGER.info("Loaded database (%d bytes).", len(data))
    return True
