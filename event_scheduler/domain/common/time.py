from __future__ import annotations

from datetime import datetime

# Due dates are local wall-clock times: naive datetimes, minute precision is enough
# for reminders but seconds are kept as given.


def ensure_naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        raise ValueError("due dates are local wall-clock times and must be timezone-naive")
    return dt


def to_iso(dt: datetime) -> str:
    ensure_naive(dt)
    return dt.isoformat(timespec="seconds")


def from_iso(s: str) -> datetime:
    dt = datetime.fromisoformat(s)
    # rows written by older builds may carry an offset; keep the wall-clock part
    return dt.replace(tzinfo=None)


def parse_user_datetime(text: str) -> datetime:
    """Parse 'YYYY-MM-DD HH:MM' (or ISO 'T' separated) typed by the user."""
    raw = text.strip().replace("T", " ")
    for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date/time: {text!r}")
