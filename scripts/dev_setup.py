"""Write spellbook settings into a local .env file and create the database tables."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import dotenv_values, set_key

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from spellbook import create_app
from spellbook.extensions import db
from spellbook.providers import ProviderName

DEFAULT_ENV_PATH = REPO_ROOT / ".env"
FLASK_APP = "spellbook:create_app"

# .env key -> argparse destination
ENV_OPTIONS = {
    "LLM_PROVIDER": "llm_provider",
    "LLM_API_KEY": "llm_api_key",
    "LLM_API_BASE": "llm_api_base",
    "LLM_MODEL": "llm_model",
    "LOG_LEVEL": "log_level",
    "DATABASE_URL": "database_url",
}
SECRET_KEYS = {"LLM_API_KEY"}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--llm-provider", choices=[name.value for name in ProviderName])
    parser.add_argument("--llm-api-key", help="Key for the hosted provider.")
    parser.add_argument("--llm-api-base", help="Base URL of a self-hosted Ollama or LM Studio server.")
    parser.add_argument("--llm-model", help="Model identifier; the provider default is used when unset.")
    parser.add_argument("--log-level", help="Application log level, e.g. DEBUG.")
    parser.add_argument("--database-url")
    parser.add_argument("--env-path", type=Path, default=DEFAULT_ENV_PATH)
    parser.add_argument("--skip-db", action="store_true", help="Only update the .env file.")
    return parser.parse_args(argv)


def update_env_file(args: argparse.Namespace) -> Dict[str, Optional[str]]:
    """Set the given options in ``args.env_path``, keeping every other line."""

    env_path: Path = args.env_path
    env_path.touch(exist_ok=True)
    updates = {"FLASK_APP": FLASK_APP}
    for key, dest in ENV_OPTIONS.items():
        value = getattr(args, dest)
        if value:
            updates[key] = value
    for key, value in updates.items():
        set_key(str(env_path), key, value, quote_mode="never")
    return dict(dotenv_values(env_path))


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    env_values = update_env_file(args)

    if not args.skip_db:
        app = create_app()
        with app.app_context():
            db.create_all()
        print("Database initialized.")

    print(f"Settings written to {args.env_path}:")
    for key in sorted(env_values):
        value = "<redacted>" if key in SECRET_KEYS else env_values[key]
        print(f"  {key}={value}")


if __name__ == "__main__":
    main()
