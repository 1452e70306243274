from __future__ import annotations

import atexit
import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .classes.controller import register as register_classes
from .container import Container, build_container
from .core.constants import (
    DEFAULT_IDLE_CONNECTION_SECONDS,
    DEFAULT_OUTBOX_LIMIT,
    DEFAULT_PERIOD_TABLE,
    DEFAULT_RECONNECT_DELAY_MS,
    DEFAULT_SIGNAL_THRESHOLD,
    DEFAULT_SIMULATION_DELAY_SECONDS,
    EVENT_STREAM_HEARTBEAT_SECONDS,
)
from .database.bootstrap import apply_schema, as_db_config, ensure_demo_data, list_tables
from .presence.controller import register as register_presence
from .sessions.controller import register as register_sessions
from .users.controller import register as register_users

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    """Application factory.

    ``container`` lets tests supply services wired on in-memory repositories;
    otherwise the MySQL container is built from the active settings module.
    """

    load_dotenv(override=False)
    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)

    logging.basicConfig(level=getattr(settings, "LOG_LEVEL", "INFO"), format=LOG_FORMAT)

    app = Flask(__name__)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["EVENT_STREAM_HEARTBEAT_SECONDS"] = getattr(settings, "EVENT_STREAM_HEARTBEAT_SECONDS", EVENT_STREAM_HEARTBEAT_SECONDS)

    if container is None:
        db_config = dict(getattr(settings, "DB_CONFIG"))
        logger.info(f"settings={settings_module} db={as_db_config(db_config).describe()}")

        schema_dir = Path(__file__).resolve().parents[3] / "database"
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=schema_dir / "schema.sql")
            logger.info(f"Schema ready (tables={len(list_tables(db_config))})")
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            ensure_demo_data(db_config)

        container = build_container(
            db_config=db_config,
            period_table=getattr(settings, "PERIOD_TABLE", DEFAULT_PERIOD_TABLE),
            signal_threshold=getattr(settings, "SIGNAL_THRESHOLD", DEFAULT_SIGNAL_THRESHOLD),
            reconnect_delay_ms=int(getattr(settings, "RECONNECT_DELAY_MS", DEFAULT_RECONNECT_DELAY_MS)),
            outbox_limit=int(getattr(settings, "OUTBOX_LIMIT", DEFAULT_OUTBOX_LIMIT)),
            idle_timeout_seconds=getattr(settings, "IDLE_CONNECTION_SECONDS", DEFAULT_IDLE_CONNECTION_SECONDS),
            simulate_presence=bool(getattr(settings, "SIMULATE_PRESENCE", False)),
            simulation_delay_seconds=float(getattr(settings, "SIMULATION_DELAY_SECONDS", DEFAULT_SIMULATION_DELAY_SECONDS)),
        )
        atexit.register(container.presence_channel.shutdown)
        atexit.register(container.session_manager.shutdown)

    app.extensions["classsync"] = container

    register_users(app, container)
    register_classes(app, container)
    register_sessions(app, container)
    register_attendance(app, container)
    register_presence(app, container)

    return app
