"""Owned collections of base events.

A store is the only thing that mutates events. ``apply`` writes a whole
SeriesChange at once; ``add``/``replace``/``remove`` are single-record shortcuts.
"""
import json
import logging
import os
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from backend.recurrence import SeriesEvent
from backend.series_scope import SeriesChange
from models import CalendarEvent

logger = logging.getLogger(__name__)


class EventStoreError(Exception):
    """Raised when the backing storage cannot be read or written."""


class EventStore:
    def get(self, event_id):
        raise NotImplementedError

    def list_events(self):
        raise NotImplementedError

    def apply(self, change):
        raise NotImplementedError

    def add(self, event):
        self.apply(SeriesChange(added=[event]))
        return event

    def replace(self, event):
        self.apply(SeriesChange(replaced=[event]))
        return event

    def remove(self, event_id):
        self.apply(SeriesChange(removed=[event_id]))


def _merge(events_by_id, change):
    merged = dict(events_by_id)
    for event in change.replaced:
        if event.id in merged:
            merged[event.id] = event.copy()
    for event_id in change.removed:
        merged.pop(event_id, None)
    for event in change.added:
        merged[event.id] = event.copy()
    return merged


class MemoryEventStore(EventStore):
    """Dict-backed store; insertion order is preserved."""

    def __init__(self, events=None):
        self._events = {}
        for event in events or []:
            self._events[event.id] = event.copy()

    def get(self, event_id):
        event = self._events.get(event_id)
        return event.copy() if event else None

    def list_events(self):
        return [event.copy() for event in self._events.values()]

    def apply(self, change):
        if change.is_empty:
            return
        self._events = _merge(self._events, change)


class JsonFileEventStore(EventStore):
    """Events kept as a JSON array in a single file (``data/events.json`` by default)."""

    def __init__(self, path):
        self.path = Path(path)

    def _ensure_file(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write([])

    def _read(self):
        self._ensure_file()
        try:
            raw = json.loads(self.path.read_text(encoding='utf-8') or '[]')
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable event file %s, treating as empty: %s", self.path, exc)
            return {}
        if not isinstance(raw, list):
            logger.warning("Event file %s does not hold a list, treating as empty", self.path)
            return {}
        events = {}
        for record in raw:
            try:
                event = SeriesEvent.from_dict(record)
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed event record %r: %s", record, exc)
                continue
            events[event.id] = event
        return events

    def _write(self, records):
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            tmp_path.write_text(json.dumps(records, indent=2), encoding='utf-8')
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise EventStoreError(f"Could not write {self.path}: {exc}") from exc

    def get(self, event_id):
        return self._read().get(event_id)

    def list_events(self):
        return list(self._read().values())

    def apply(self, change):
        if change.is_empty:
            return
        merged = _merge(self._read(), change)
        self._write([event.to_dict() for event in merged.values()])


class SqlEventStore(EventStore):
    """Events persisted through a Flask-SQLAlchemy session; one commit per change."""

    def __init__(self, session):
        self.session = session

    def get(self, event_id):
        row = self.session.get(CalendarEvent, event_id)
        return row.to_series() if row else None

    def list_events(self):
        rows = self.session.query(CalendarEvent).order_by(CalendarEvent.start.asc()).all()
        return [row.to_series() for row in rows]

    def apply(self, change):
        if change.is_empty:
            return
        try:
            for event_id in change.removed:
                row = self.session.get(CalendarEvent, event_id)
                if row:
                    self.session.delete(row)
            for event in change.replaced:
                row = self.session.get(CalendarEvent, event.id)
                if row:
                    row.update_from_series(event)
            for event in change.added:
                self.session.add(CalendarEvent.from_series(event))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise EventStoreError(f"Could not save calendar events: {exc}") from exc
