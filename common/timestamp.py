"""
Timestamp Utilities

Formats used on the wire and in published values.
"""

from datetime import datetime, timezone


def epoch_millis(ts: datetime | None = None) -> str:
    """
    Milliseconds since the Unix epoch, as a string.

    This is the format the REST server expects in write requests.
    """
    ts = ts or datetime.now(timezone.utc)
    return str(int(ts.timestamp() * 1000))


def run_time_string(ts: datetime | None = None) -> str:
    """Local wall-clock time as 'YYYY-MM-DD HH:MM:SS'"""
    ts = ts or datetime.now()
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def minutes_between(start: datetime, end: datetime) -> float:
    """Elapsed minutes from start to end (negative if end is earlier)"""
    return (end - start).total_seconds() / 60.0
