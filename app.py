"""
Kanban ordering service - Flask application factory.

Configuration comes from the environment (optionally a ``.env`` file):
    DATABASE_URL                 SQLAlchemy URL (default: sqlite:///kanban.db)
    SESSION_SECRET               Flask secret key
    LOG_LEVEL                    Root log level (default: INFO)
    KANBAN_POSITION_GAP          Spacing between appended tasks (default: 1000000)
    KANBAN_REBALANCE_THRESHOLD   Smallest tolerated gap before a column is rebalanced (default: 100)
    FLASK_ENV                    "production" makes startup validation fatal
"""

import os
import logging
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask

from models import db
from services.gap_monitor import DEFAULT_REBALANCE_THRESHOLD
from services.position_allocator import POSITION_GAP
from utils.startup_validation import run_startup_validation

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    """Integer env var; an unparsable value falls back to ``default``."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError:
        logger.warning(f"⚠️ {name}={raw!r} is not an integer, using default {default}")
        return default


def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Build the Flask app, bind the database and register blueprints."""
    load_dotenv()
    configure_logging()

    app = Flask(__name__)
    app.config.update(
        SQLALCHEMY_DATABASE_URI=os.getenv("DATABASE_URL", "sqlite:///kanban.db"),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SECRET_KEY=os.getenv("SESSION_SECRET"),
        KANBAN_POSITION_GAP=_env_int("KANBAN_POSITION_GAP", POSITION_GAP),
        KANBAN_REBALANCE_THRESHOLD=_env_int("KANBAN_REBALANCE_THRESHOLD", DEFAULT_REBALANCE_THRESHOLD),
        JSON_SORT_KEYS=False,
    )
    if config_overrides:
        app.config.update(config_overrides)

    # Heroku-style URLs
    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if uri and uri.startswith("postgres://"):
        app.config["SQLALCHEMY_DATABASE_URI"] = uri.replace("postgres://", "postgresql://", 1)

    app.extensions["startup_report"] = run_startup_validation(
        app.config, environment=app.config.get("ENV_NAME") or os.getenv("FLASK_ENV", "development")
    )

    db.init_app(app)

    from routes.api_kanban import api_kanban_bp
    from routes.health_production import health_production_bp

    app.register_blueprint(api_kanban_bp)
    app.register_blueprint(health_production_bp)

    logger.info(
        f"✅ Kanban ordering service ready (gap={app.config['KANBAN_POSITION_GAP']}, "
        f"threshold={app.config['KANBAN_REBALANCE_THRESHOLD']})"
    )
    return app
