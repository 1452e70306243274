import os

from src.classsync.classsync.core.constants import DEFAULT_PERIOD_TABLE

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "classsync_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

PERIOD_TABLE = DEFAULT_PERIOD_TABLE
SIGNAL_THRESHOLD = -80
RECONNECT_DELAY_MS = 3000
OUTBOX_LIMIT = 500
IDLE_CONNECTION_SECONDS = 120
SIMULATE_PRESENCE = False
SIMULATION_DELAY_SECONDS = 0.01
EVENT_STREAM_HEARTBEAT_SECONDS = 0.05

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
