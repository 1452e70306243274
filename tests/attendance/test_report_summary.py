from __future__ import annotations

from datetime import date

from src.classsync.classsync.core.enums import AttendanceStatus


def test_student_summary_counts_held_periods_and_attendance(container, fixed_now):
    manager = container.session_manager

    s1 = manager.start_session(1, date(2026, 2, 2), [1, 2], "FAC001", now=fixed_now)
    manager.mark_manual(s1.session_id, "S1", 1, now=fixed_now)
    manager.mark_manual(s1.session_id, "S1", 2, status=AttendanceStatus.LATE, now=fixed_now)
    manager.mark_manual(s1.session_id, "S2", 1, now=fixed_now)
    manager.stop_session(s1.session_id, now=fixed_now)

    s2 = manager.start_session(1, date(2026, 2, 3), [3], "FAC001", now=fixed_now)
    manager.mark_manual(s2.session_id, "S2", 3, status=AttendanceStatus.ABSENT, now=fixed_now)
    manager.stop_session(s2.session_id, now=fixed_now)

    # cancelled sessions are not counted as held
    s3 = manager.start_session(1, date(2026, 2, 4), [1], "FAC001", now=fixed_now)
    manager.cancel_session(s3.session_id, now=fixed_now)

    summary = container.report_service.student_summary("S1")
    assert summary.overall == {"student_id": "S1", "attended": 2, "total": 3, "percentage": 66.7}
    assert summary.subjects[0]["subject"] == "Operating Systems"

    s2_summary = container.report_service.student_summary("S2")
    assert (s2_summary.overall["attended"], s2_summary.overall["total"]) == (1, 3)

    ranged = container.report_service.student_summary("S1", start=date(2026, 2, 3))
    assert (ranged.overall["attended"], ranged.overall["total"]) == (0, 1)


def test_student_without_classes_has_empty_summary(container):
    summary = container.report_service.student_summary("NOBODY")
    assert summary.overall["total"] == 0
    assert summary.overall["percentage"] == 0.0
    assert summary.subjects == []
