"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# (period, start, end) in 12-hour clock; lunch runs 12:50 PM - 1:50 PM.
DEFAULT_PERIOD_TABLE = (
    (1, "9:30 AM", "10:20 AM"),
    (2, "10:20 AM", "11:10 AM"),
    (3, "11:10 AM", "12:00 PM"),
    (4, "12:00 PM", "12:50 PM"),
    (5, "1:50 PM", "2:40 PM"),
    (6, "2:40 PM", "3:30 PM"),
    (7, "3:30 PM", "4:20 PM"),
)

DEFAULT_SIGNAL_THRESHOLD = -80
DEFAULT_RECONNECT_DELAY_MS = 3000
DEFAULT_SIMULATION_DELAY_SECONDS = 2.0
DEFAULT_HISTORY_LIMIT = 30
EVENT_STREAM_HEARTBEAT_SECONDS = 15
# Per-connection outbox size; messages beyond it are dropped for that connection.
DEFAULT_OUTBOX_LIMIT = 500
# Connections without an open event stream are closed after this long without traffic.
DEFAULT_IDLE_CONNECTION_SECONDS = 120

WEEKDAYS = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")
