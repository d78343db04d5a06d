"""Scoped edits and deletes for repeating events.

Every operation is pure: it copies the event it is handed and returns a
SeriesChange. Stores apply a change in one write so the truncated base and
its new sibling always appear together.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from backend.recurrence import (
    OVERRIDE_FIELDS,
    REPEAT_NONE,
    SeriesEvent,
    build_occurrence,
    first_live_key,
    is_occurrence_key,
    new_event_id,
)

logger = logging.getLogger(__name__)

SCOPE_SINGLE = 'single'
SCOPE_FUTURE = 'future'
SCOPE_CANCEL = 'cancel'
ALLOWED_SCOPES = (SCOPE_SINGLE, SCOPE_FUTURE, SCOPE_CANCEL)

SERIES_FIELDS = ('title', 'category', 'start', 'end', 'repeat')


@dataclass
class SeriesChange:
    added: List[SeriesEvent] = field(default_factory=list)
    replaced: List[SeriesEvent] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    @property
    def is_empty(self):
        return not (self.added or self.replaced or self.removed)

    def to_dict(self):
        return {
            'created': [ev.to_dict() for ev in self.added],
            'updated': [ev.to_dict() for ev in self.replaced],
            'deleted': list(self.removed),
        }


def _prune_stale_exceptions(event):
    """Drop ex_dates/overrides whose keys the rule can no longer produce."""
    # is_occurrence_key() rejects ex-dated keys, so check ex_dates without them.
    candidates, event.ex_dates = event.ex_dates, set()
    event.ex_dates = {key for key in candidates if is_occurrence_key(event, key)}
    event.overrides = {
        key: patch for key, patch in event.overrides.items()
        if key not in event.ex_dates and is_occurrence_key(event, key)
    }


def _truncate_at(event, key):
    event.until = key
    event.ex_dates = {ex for ex in event.ex_dates if ex < key}
    event.overrides = {ov_key: patch for ov_key, patch in event.overrides.items() if ov_key < key}


def apply_series_patch(event, patch):
    """Apply ``patch`` to the whole record (non-scoped edit)."""
    updated = event.copy()
    for name in SERIES_FIELDS:
        if patch.get(name) is not None:
            setattr(updated, name, patch[name])
    if patch.get('start') is not None and patch.get('end') is None:
        updated.end = updated.start + event.duration
    if updated.repeat == REPEAT_NONE:
        updated.until = None
        updated.ex_dates = set()
        updated.overrides = {}
    elif updated.start != event.start or updated.repeat != event.repeat:
        _prune_stale_exceptions(updated)
    return SeriesChange(replaced=[updated])


def apply_edit_scope(event, occurrence_key, scope, patch, new_id=None):
    """Edit one occurrence (``single``) or split the series at it (``future``)."""
    if scope == SCOPE_CANCEL:
        return SeriesChange()
    if not event.is_repeating:
        return apply_series_patch(event, patch)
    if scope not in (SCOPE_SINGLE, SCOPE_FUTURE):
        raise ValueError(f"Unknown edit scope: {scope}")
    if not is_occurrence_key(event, occurrence_key):
        logger.debug("Ignoring edit of stale occurrence %s on event %s", occurrence_key, event.id)
        return SeriesChange()

    if scope == SCOPE_SINGLE:
        updated = event.copy()
        override = dict(updated.overrides.get(occurrence_key) or {})
        for name in OVERRIDE_FIELDS:
            if patch.get(name) is not None:
                override[name] = patch[name]
        if patch.get('start') is not None and patch.get('end') is None:
            current = build_occurrence(event, occurrence_key)
            override['end'] = patch['start'] + (current.end - current.start)
        updated.overrides[occurrence_key] = override
        return SeriesChange(replaced=[updated])

    if occurrence_key <= first_live_key(event):
        # Nothing live before the key: patch the base, and let the patched
        # fields win over any one-off override at the key.
        base = event.copy()
        override = base.overrides.pop(occurrence_key, {})
        remaining = {name: value for name, value in override.items() if patch.get(name) is None}
        if patch.get('start') is not None:
            remaining.pop('end', None)
        if remaining:
            base.overrides[occurrence_key] = remaining
        return apply_series_patch(base, patch)

    current = build_occurrence(event, occurrence_key)
    start = patch.get('start') or current.start
    end = patch.get('end') or (start + (current.end - current.start))
    sibling = SeriesEvent(
        id=new_id or new_event_id(),
        title=patch.get('title') or current.title,
        category=patch.get('category') or current.category,
        start=start,
        end=end,
        repeat=patch.get('repeat') or event.repeat,
    )
    truncated = event.copy()
    _truncate_at(truncated, occurrence_key)
    logger.info("Split event %s at %s into new series %s", event.id, occurrence_key, sibling.id)
    return SeriesChange(added=[sibling], replaced=[truncated])


def apply_delete_scope(event, occurrence_key, scope):
    """Suppress one occurrence (``single``) or end the series at it (``future``)."""
    if scope == SCOPE_CANCEL:
        return SeriesChange()
    if not event.is_repeating or occurrence_key is None:
        return SeriesChange(removed=[event.id])
    if scope not in (SCOPE_SINGLE, SCOPE_FUTURE):
        raise ValueError(f"Unknown delete scope: {scope}")
    if not is_occurrence_key(event, occurrence_key):
        logger.debug("Ignoring delete of stale occurrence %s on event %s", occurrence_key, event.id)
        return SeriesChange()

    if scope == SCOPE_SINGLE:
        updated = event.copy()
        updated.ex_dates.add(occurrence_key)
        updated.overrides.pop(occurrence_key, None)
        return SeriesChange(replaced=[updated])

    if occurrence_key <= first_live_key(event):
        return SeriesChange(removed=[event.id])
    truncated = event.copy()
    _truncate_at(truncated, occurrence_key)
    return SeriesChange(replaced=[truncated])
