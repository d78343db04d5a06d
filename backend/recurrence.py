"""Recurrence expansion for repeating calendar events.

All datetimes are naive local wall-clock values. An occurrence key is the
natural start the repeat rule produces from the base ``start``; keys stay
stable across edits that do not touch ``start`` or ``repeat``.
"""
import calendar
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterator, Optional, Set

REPEAT_NONE = 'none'
REPEAT_DAILY = 'daily'
REPEAT_WEEKLY = 'weekly'
REPEAT_MONTHLY_DAY = 'monthly_day'
REPEAT_MONTHLY_NTH_WEEKDAY = 'monthly_nth_weekday'
REPEAT_YEARLY = 'yearly'

ALLOWED_REPEATS = (
    REPEAT_NONE,
    REPEAT_DAILY,
    REPEAT_WEEKLY,
    REPEAT_MONTHLY_DAY,
    REPEAT_MONTHLY_NTH_WEEKDAY,
    REPEAT_YEARLY,
)
ALLOWED_CATEGORIES = ('school', 'activities', 'personal')
DEFAULT_CATEGORY = 'school'
OVERRIDE_FIELDS = ('start', 'end', 'title', 'category')

# Default slot for records that only carry a day.
LEGACY_DAY_START = time(12, 0)
LEGACY_DAY_END = time(13, 0)

_FIXED_PERIODS = {
    REPEAT_DAILY: timedelta(days=1),
    REPEAT_WEEKLY: timedelta(days=7),
}


def new_event_id():
    return uuid.uuid4().hex[:12]


def format_local(value):
    """Render a naive datetime as ``YYYY-MM-DDTHH:MM`` (seconds only when set)."""
    if value is None:
        return None
    if value.second or value.microsecond:
        return value.isoformat()
    return value.strftime('%Y-%m-%dT%H:%M')


def parse_local(raw):
    if raw is None or raw == '':
        return None
    if isinstance(raw, datetime):
        return raw.replace(tzinfo=None)
    if isinstance(raw, date):
        return datetime.combine(raw, time())
    value = datetime.fromisoformat(str(raw).strip())
    return value.replace(tzinfo=None)


def _patch_to_dict(patch):
    data = {}
    for key in OVERRIDE_FIELDS:
        if key not in patch:
            continue
        value = patch[key]
        data[key] = format_local(value) if isinstance(value, datetime) else value
    return data


def _patch_from_dict(raw):
    patch = {}
    for key in OVERRIDE_FIELDS:
        if raw.get(key) in (None, ''):
            continue
        patch[key] = parse_local(raw[key]) if key in ('start', 'end') else raw[key]
    return patch


@dataclass
class SeriesEvent:
    """A user-authored event, optionally repeating."""

    id: str
    title: str
    start: datetime
    end: datetime
    category: str = DEFAULT_CATEGORY
    repeat: str = REPEAT_NONE
    until: Optional[datetime] = None
    ex_dates: Set[datetime] = field(default_factory=set)
    overrides: Dict[datetime, dict] = field(default_factory=dict)

    @property
    def duration(self):
        return self.end - self.start

    @property
    def is_repeating(self):
        return (self.repeat or REPEAT_NONE) != REPEAT_NONE

    def copy(self):
        return SeriesEvent(
            id=self.id,
            title=self.title,
            start=self.start,
            end=self.end,
            category=self.category,
            repeat=self.repeat,
            until=self.until,
            ex_dates=set(self.ex_dates),
            overrides={key: dict(patch) for key, patch in self.overrides.items()},
        )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'category': self.category,
            'start': format_local(self.start),
            'end': format_local(self.end),
            'repeat': self.repeat or REPEAT_NONE,
            'until': format_local(self.until),
            'ex_dates': [format_local(key) for key in sorted(self.ex_dates)],
            'overrides': {
                format_local(key): _patch_to_dict(patch)
                for key, patch in sorted(self.overrides.items())
            },
        }

    @classmethod
    def from_dict(cls, data):
        """Build from a stored record; accepts camelCase and legacy day-only rows."""
        start = parse_local(data.get('start'))
        end = parse_local(data.get('end'))
        if start is None and data.get('date'):
            day = parse_local(data['date']).date()
            start = datetime.combine(day, LEGACY_DAY_START)
            end = end or datetime.combine(day, LEGACY_DAY_END)
        if start is None:
            raise ValueError('event record has no start')
        if end is None:
            end = start + timedelta(hours=1)

        raw_ex = data.get('ex_dates', data.get('exDates')) or []
        raw_overrides = data.get('overrides') or {}
        return cls(
            id=str(data.get('id') or new_event_id()),
            title=data.get('title') or '',
            start=start,
            end=end,
            category=(data.get('category') or DEFAULT_CATEGORY).lower(),
            repeat=data.get('repeat') or REPEAT_NONE,
            until=parse_local(data.get('until')),
            ex_dates={parse_local(value) for value in raw_ex if value},
            overrides={
                parse_local(key): _patch_from_dict(patch or {})
                for key, patch in raw_overrides.items()
            },
        )


@dataclass
class Occurrence:
    """One materialized instance of a SeriesEvent inside a window."""

    start: datetime
    end: datetime
    title: str
    category: str
    series_id: str
    occurrence_key: Optional[datetime]
    repeat: str

    def to_dict(self):
        return {
            'id': f"{self.series_id}|{format_local(self.occurrence_key or self.start)}",
            'series_id': self.series_id,
            'occurrence_key': format_local(self.occurrence_key),
            'title': self.title,
            'category': self.category,
            'start': format_local(self.start),
            'end': format_local(self.end),
            'repeat': self.repeat,
        }


def weekday_occurrence_in_month(day_value):
    """Return which occurrence (1-5) of its weekday ``day_value`` is in its month."""
    return (day_value.day - 1) // 7 + 1


def nth_weekday_of_month(year, month, weekday, nth):
    """Date of the ``nth`` ``weekday`` (Mon=0) in a month, or None if it does not exist."""
    if weekday is None or nth is None or nth < 1:
        return None
    month_cal = calendar.monthcalendar(year, month)
    days = [week[weekday] for week in month_cal if week[weekday]]
    if nth > len(days):
        return None
    return date(year, month, days[nth - 1])


def _shift_month(year, month, offset):
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _months_between(earlier, later):
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def _nth_start(event, n):
    """Natural start of the series' ``n``-th period, or None when that period has no date."""
    base = event.start
    repeat = event.repeat
    if repeat in _FIXED_PERIODS:
        return base + _FIXED_PERIODS[repeat] * n
    if repeat == REPEAT_YEARLY:
        year = base.year + n
        # Feb 29 clamps to the last day of February.
        day = min(base.day, calendar.monthrange(year, base.month)[1])
        return base.replace(year=year, day=day)
    year, month = _shift_month(base.year, base.month, n)
    if repeat == REPEAT_MONTHLY_DAY:
        if base.day > calendar.monthrange(year, month)[1]:
            return None
        return base.replace(year=year, month=month)
    if repeat == REPEAT_MONTHLY_NTH_WEEKDAY:
        target = nth_weekday_of_month(year, month, base.weekday(), weekday_occurrence_in_month(base))
        if target is None:
            return None
        return datetime.combine(target, base.time())
    return None


def _first_period(event, after):
    if after is None or after <= event.start:
        return 0
    repeat = event.repeat
    if repeat in _FIXED_PERIODS:
        return (after - event.start) // _FIXED_PERIODS[repeat]
    if repeat == REPEAT_YEARLY:
        return max(after.year - event.start.year - 1, 0)
    return max(_months_between(event.start, after) - 1, 0)


def occurrence_starts(event, after=None) -> Iterator[datetime]:
    """Yield natural occurrence starts in ascending order, ignoring until/ex_dates.

    ``after`` is a hint: iteration may begin slightly before it, never after.
    The sequence is unbounded for repeating events; callers stop it.
    """
    if not event.is_repeating:
        yield event.start
        return
    if event.repeat not in ALLOWED_REPEATS:
        return
    n = _first_period(event, after)
    while True:
        try:
            candidate = _nth_start(event, n)
        except (ValueError, OverflowError):
            # Ran past datetime.max.
            return
        n += 1
        if candidate is not None:
            yield candidate


def first_live_key(event):
    """Earliest occurrence key not suppressed by ex_dates or until, or None."""
    if not event.is_repeating:
        return None
    for key in occurrence_starts(event):
        if event.until is not None and key >= event.until:
            return None
        if key not in event.ex_dates:
            return key
    return None


def is_occurrence_key(event, key):
    """True when ``key`` is an occurrence start that expand() can still produce."""
    if key is None or not event.is_repeating:
        return False
    if key < event.start or key in event.ex_dates:
        return False
    if event.until is not None and key >= event.until:
        return False
    for candidate in occurrence_starts(event, after=key):
        if candidate >= key:
            return candidate == key
    return False


def build_occurrence(event, key):
    """Materialize the occurrence at ``key`` with its override applied."""
    fields = {
        'start': key,
        'end': key + event.duration,
        'title': event.title,
        'category': event.category,
    }
    override = event.overrides.get(key) or {}
    for name in OVERRIDE_FIELDS:
        if name in override:
            fields[name] = override[name]
    return Occurrence(
        start=fields['start'],
        end=fields['end'],
        title=fields['title'],
        category=fields['category'],
        series_id=event.id,
        occurrence_key=key,
        repeat=event.repeat,
    )


def _overlaps(occurrence, range_start, range_end):
    return occurrence.end > range_start and occurrence.start < range_end


def _natural_keys_in_window(event, range_start, range_end):
    for key in occurrence_starts(event, after=range_start - event.duration):
        if key >= range_end:
            return
        if event.until is not None and key >= event.until:
            return
        if key + event.duration <= range_start:
            continue
        yield key


def expand(event, range_start, range_end) -> Iterator[Occurrence]:
    """Yield every occurrence of ``event`` intersecting ``[range_start, range_end)``."""
    if range_start >= range_end or event.end <= event.start:
        return
    if not event.is_repeating:
        single = Occurrence(
            start=event.start,
            end=event.end,
            title=event.title,
            category=event.category,
            series_id=event.id,
            occurrence_key=None,
            repeat=REPEAT_NONE,
        )
        if _overlaps(single, range_start, range_end):
            yield single
        return

    if not event.overrides:
        for key in _natural_keys_in_window(event, range_start, range_end):
            if key in event.ex_dates:
                continue
            yield build_occurrence(event, key)
        return

    # Overrides may move an occurrence across the window edge in either direction.
    collected = {}
    for key in _natural_keys_in_window(event, range_start, range_end):
        if key not in event.ex_dates:
            collected[key] = build_occurrence(event, key)
    for key in event.overrides:
        if key not in collected and is_occurrence_key(event, key):
            collected[key] = build_occurrence(event, key)
    occurrences = [occ for occ in collected.values() if _overlaps(occ, range_start, range_end)]
    occurrences.sort(key=lambda occ: (occ.start, occ.occurrence_key))
    yield from occurrences


def expand_all(events, range_start, range_end, category=None):
    """Expand many events into one list ordered by start, then title."""
    result = []
    for event in events:
        for occurrence in expand(event, range_start, range_end):
            if category and occurrence.category != category:
                continue
            result.append(occurrence)
    result.sort(key=lambda occ: (occ.start, occ.end, occ.title.lower(), occ.series_id))
    return result
