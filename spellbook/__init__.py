from __future__ import annotations

from pathlib import Path

from flask import Flask
from dotenv import load_dotenv

from .config import Config
from .extensions import db, migrate
from .db_utils import ensure_database_schema


BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    configure_logging(app)
    register_extensions(app)
    register_blueprints(app)

    with app.app_context():
        ensure_database_schema(db.engine)

    return app


def configure_logging(app: Flask) -> None:
    # Module loggers under ``spellbook.*`` propagate to the application logger.
    app.logger.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())


def register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)


def register_blueprints(app: Flask) -> None:
    from .api import bp as api_bp

    app.register_blueprint(api_bp)
