"""Example: drive one attendance session through the service layer (no Flask).

Controllers are thin; everything below is what the HTTP routes call.
Run `python scripts/init_db.py && python scripts/seed_db.py` first.
"""

import importlib
from datetime import date
import logging

from config import get_settings_module

from src.classsync.classsync.container import build_container
from src.classsync.classsync.core.exceptions import DomainError


def main():
    logging.basicConfig(level="INFO", format="%(levelname)s [%(name)s] %(message)s")
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG, period_table=settings.PERIOD_TABLE)

    classes = container.class_registry.classes_owned_by("FAC001")
    if not classes:
        raise SystemExit("No classes for FAC001; run scripts/seed_db.py first")
    cls = classes[0]

    manager = container.session_manager
    session = manager.start_session(cls.class_id, date.today(), cls.periods[:1], cls.faculty_id)
    try:
        for student_id in sorted(cls.students):
            manager.mark_manual(session.session_id, student_id, session.periods[0])
        # a second mark for the same student and period is rejected
        manager.mark_manual(session.session_id, sorted(cls.students)[0], session.periods[0])
    except DomainError as e:
        print(f"Rejected: {e}")
    finally:
        manager.stop_session(session.session_id)

    done = manager.get_session(session.session_id)
    print(f"Session {done.session_id} {done.status.value}: {len(done.records)} records")
    for student_id in sorted(cls.students):
        print(student_id, container.report_service.student_summary(student_id).overall)


if __name__ == "__main__":
    main()
