# ============================================
#   Acaragraph — Time helpers
# ============================================
#
# All timestamps are UTC. The store keeps them as "YYYY-MM-DD HH:MM:SS"
# (same shape as SQLite CURRENT_TIMESTAMP) so SQL comparisons stay textual.

from datetime import datetime, timezone

DB_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_timestamp(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(DB_TIMESTAMP_FORMAT)


def from_db_timestamp(value):
    """
    Parse a stored timestamp back into an aware UTC datetime.
    Accepts the native format and ISO-8601 (with "T" / trailing "Z").
    Returns None for empty values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    raw = str(value).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"

    try:
        dt = datetime.strptime(raw, DB_TIMESTAMP_FORMAT)
    except ValueError:
        dt = datetime.fromisoformat(raw)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    """ISO-8601 with a trailing Z, the format sent to clients."""
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
