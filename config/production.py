import os

from src.classsync.classsync.core.constants import DEFAULT_PERIOD_TABLE

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "classsync"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "classsync_db"),
    "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

PERIOD_TABLE = DEFAULT_PERIOD_TABLE
SIGNAL_THRESHOLD = float(os.getenv("SIGNAL_THRESHOLD", "-80")) if os.getenv("SIGNAL_THRESHOLD", "-80") else None
RECONNECT_DELAY_MS = int(os.getenv("RECONNECT_DELAY_MS", "3000"))
OUTBOX_LIMIT = int(os.getenv("OUTBOX_LIMIT", "500"))
IDLE_CONNECTION_SECONDS = float(os.getenv("IDLE_CONNECTION_SECONDS", "120"))

SIMULATE_PRESENCE = bool(int(os.getenv("SIMULATE_PRESENCE", "0")))
SIMULATION_DELAY_SECONDS = float(os.getenv("SIMULATION_DELAY_SECONDS", "2"))

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
