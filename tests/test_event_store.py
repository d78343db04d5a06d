import json
from datetime import datetime

import pytest

from backend.event_store import EventStoreError, JsonFileEventStore, MemoryEventStore, SqlEventStore
from backend.recurrence import expand_all
from backend.series_scope import SeriesChange, apply_edit_scope

KEY = datetime(2025, 3, 3, 9, 0)


def test_memory_store_hands_out_copies(weekly_event):
    store = MemoryEventStore([weekly_event])
    fetched = store.get('weekly1')
    fetched.title = 'Changed'
    assert store.get('weekly1').title == 'Chem lab'
    assert store.get('missing') is None


def test_memory_store_add_replace_remove(weekly_event):
    store = MemoryEventStore()
    store.add(weekly_event)
    renamed = weekly_event.copy()
    renamed.title = 'Chemistry'
    store.replace(renamed)
    assert [ev.title for ev in store.list_events()] == ['Chemistry']
    store.remove('weekly1')
    assert store.list_events() == []


def test_replace_of_unknown_id_is_ignored(weekly_event):
    store = MemoryEventStore()
    store.replace(weekly_event)
    assert store.list_events() == []


def test_json_store_creates_file_and_persists(tmp_path, weekly_event):
    path = tmp_path / 'data' / 'events.json'
    store = JsonFileEventStore(path)
    assert store.list_events() == []
    assert json.loads(path.read_text()) == []

    store.add(weekly_event)
    reopened = JsonFileEventStore(path)
    assert reopened.get('weekly1') == weekly_event


def test_json_store_applies_split_in_one_write(tmp_path, weekly_event):
    store = JsonFileEventStore(tmp_path / 'events.json')
    store.add(weekly_event)
    store.apply(apply_edit_scope(weekly_event, KEY, 'future', {'title': 'New'}, new_id='sibling'))

    records = json.loads((tmp_path / 'events.json').read_text())
    assert {record['id'] for record in records} == {'weekly1', 'sibling'}
    assert store.get('weekly1').until == KEY
    titles = [occ.title for occ in expand_all(store.list_events(), datetime(2025, 2, 24), datetime(2025, 3, 11))]
    assert titles == ['Chem lab', 'New', 'New']


def test_json_store_reads_legacy_records(tmp_path):
    path = tmp_path / 'events.json'
    path.write_text(json.dumps([
        {'id': 'a1', 'title': 'Recital', 'date': '2025-04-02', 'category': 'Activities'},
        {'id': 'a2', 'title': 'Broken'},
    ]))
    events = JsonFileEventStore(path).list_events()
    assert [ev.id for ev in events] == ['a1']
    assert events[0].start == datetime(2025, 4, 2, 12, 0)


@pytest.mark.parametrize('content', ['not json', '{"id": 1}'])
def test_json_store_treats_unreadable_file_as_empty(tmp_path, content):
    path = tmp_path / 'events.json'
    path.write_text(content)
    assert JsonFileEventStore(path).list_events() == []


def test_sql_store_round_trip(flask_app, weekly_event):
    from app import db

    weekly_event.ex_dates.add(datetime(2025, 1, 20, 9, 0))
    weekly_event.overrides[datetime(2025, 1, 13, 9, 0)] = {'title': 'Moved'}
    with flask_app.app_context():
        store = SqlEventStore(db.session)
        store.add(weekly_event)
        db.session.expire_all()
        assert store.get('weekly1') == weekly_event


def test_sql_store_applies_split(flask_app, weekly_event):
    from app import db

    with flask_app.app_context():
        store = SqlEventStore(db.session)
        store.add(weekly_event)
        store.apply(apply_edit_scope(store.get('weekly1'), KEY, 'future', {'title': 'New'}, new_id='sibling'))
        events = {ev.id: ev for ev in store.list_events()}
        assert set(events) == {'weekly1', 'sibling'}
        assert events['weekly1'].until == KEY
        assert events['sibling'].start == KEY

        store.remove('sibling')
        assert store.get('sibling') is None


def test_sql_store_rolls_back_failed_commit(flask_app, weekly_event):
    from app import db

    with flask_app.app_context():
        store = SqlEventStore(db.session)
        with pytest.raises(EventStoreError):
            store.apply(SeriesChange(added=[weekly_event, weekly_event.copy()]))

        assert store.list_events() == []
        store.add(weekly_event)
        assert [ev.id for ev in store.list_events()] == ['weekly1']
