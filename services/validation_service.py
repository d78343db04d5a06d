import re
from datetime import date, datetime, time, timedelta

from backend.recurrence import ALLOWED_CATEGORIES, ALLOWED_REPEATS, REPEAT_NONE
from backend.series_scope import ALLOWED_SCOPES, SCOPE_CANCEL

SCOPE_ALIASES = {
    "only_this": "single",
    "this": "single",
    "this_and_future": "future",
    "escape": SCOPE_CANCEL,
}
SORT_FIELDS = ("start", "title", "category")


def parse_time_str(val):
    """Parse 24h or am/pm strings into a time object; return None on failure."""
    if not val:
        return None
    if isinstance(val, time):
        return val
    s = str(val).strip().lower().replace(" ", "")

    pattern = r"^(?P<hour>\d{1,2})(:(?P<minute>\d{1,2}))?(:(?P<second>\d{1,2}))?(?P<ampm>a|p|am|pm)?$"
    m = re.match(pattern, s)
    if not m:
        return None
    try:
        hour = int(m.group("hour"))
        minute = int(m.group("minute") or 0)
        ampm = m.group("ampm")
        if m.group("second") is not None:
            sec_val = int(m.group("second"))
            if not (0 <= sec_val <= 59):
                return None
        if ampm:
            if ampm in ("p", "pm") and hour != 12:
                hour += 12
            if ampm in ("a", "am") and hour == 12:
                hour = 0
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            return None
        return time(hour=hour, minute=minute)
    except (TypeError, ValueError):
        return None


def parse_day_value(raw):
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(str(raw), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def parse_datetime_value(raw):
    """Parse a local wall-clock timestamp; a bare day means midnight. Offsets are dropped."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.replace(tzinfo=None)
    if isinstance(raw, date):
        return datetime.combine(raw, time())
    text = str(raw).strip()
    if " " in text and "T" not in text:
        day_part, _, time_part = text.partition(" ")
        day = parse_day_value(day_part)
        clock = parse_time_str(time_part)
        if day and clock:
            return datetime.combine(day, clock)
        return None
    try:
        return datetime.fromisoformat(text).replace(tzinfo=None)
    except ValueError:
        return None


def normalize_category(raw, default=None):
    value = str(raw or "").strip().lower()
    if not value:
        return default
    return value if value in ALLOWED_CATEGORIES else None


def normalize_repeat(raw, default=REPEAT_NONE):
    value = str(raw or "").strip().lower()
    if not value:
        return default
    return value if value in ALLOWED_REPEATS else None


def normalize_scope(raw):
    value = str(raw or "").strip().lower().replace("-", "_").replace(" ", "_")
    value = SCOPE_ALIASES.get(value, value)
    return value if value in ALLOWED_SCOPES else None


def normalize_sort(raw, default="start"):
    value = str(raw or "").strip().lower()
    if not value:
        return default
    return value if value in SORT_FIELDS else None


def parse_limit(raw, default=50, maximum=100):
    try:
        limit = int(raw or default)
    except (TypeError, ValueError):
        limit = default
    return max(1, min(limit, maximum))


def start_of_week(day_value):
    """Sunday on or before ``day_value``."""
    return day_value - timedelta(days=(day_value.weekday() + 1) % 7)
