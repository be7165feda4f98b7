import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _default_sqlite_uri() -> str:
    instance_path = BASE_DIR / "instance"
    instance_path.mkdir(exist_ok=True)
    return f"sqlite:///{instance_path / 'spellbook.db'}"


class Config:
    """Base configuration shared across environments."""

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _default_sqlite_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Active language-model backend. Blank model falls back to the provider default.
    LLM_PROVIDER = os.environ.get("LLM_PROVIDER", "openai")
    LLM_API_KEY = os.environ.get("LLM_API_KEY", "")
    LLM_API_BASE = os.environ.get("LLM_API_BASE", "http://localhost:11434")
    LLM_MODEL = os.environ.get("LLM_MODEL", "")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LLM_PROVIDER = "openai"
    LLM_API_KEY = "sk-test"
    LLM_MODEL = ""
