from datetime import datetime, timezone
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"


def is_valid_date(text: str) -> bool:
    """True for a real calendar date written exactly as yyyy-MM-dd."""
    if not isinstance(text, str) or len(text) != 10 or not text.isascii():
        return False
    try:
        datetime.strptime(text, DATE_FORMAT)
    except ValueError:
        return False
    return True


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an API timestamp into an aware datetime (UTC when unqualified).

    The API emits ISO-8601 with a trailing ``Z`` and optional fractional
    seconds, e.g. ``2024-06-01T12:30:00.000Z``. Missing or unparseable
    values give None; the caller treats them as "unknown".
    """
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: Optional[datetime], missing: str = "N/A") -> str:
    return value.strftime(DATE_FORMAT) if value else missing
