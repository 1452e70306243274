"""ClassSync attendance engine.

This package is organized by feature modules (timeslots, classes, attendance,
sessions, presence, users, reports) with a thin Flask controller layer on top
of service and repository layers.
"""
