from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.classsync.classsync.database.bootstrap import DEMO_USERS, as_db_config, ensure_demo_data

logger = logging.getLogger("classsync.scripts.seed_db")


def main() -> None:
    logging.basicConfig(level="INFO", format="%(levelname)s %(message)s")
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    ensure_demo_data(db_config)
    logger.info(f"Seeded {as_db_config(db_config).describe()}")
    for role, name, identifier, password, *_ in DEMO_USERS:
        logger.info(f"  {role:<8} {identifier:<10} / {password}  ({name})")


if __name__ == "__main__":
    main()
