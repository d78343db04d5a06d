import json

from backend.event_store import JsonFileEventStore, MemoryEventStore
from scripts.import_events_json import import_events


def _write_source(path):
    path.write_text(json.dumps([
        {'id': 'a1', 'title': 'Recital', 'date': '2025-04-02', 'category': 'Activities'},
        {'id': 'weekly1', 'title': 'Chem lab (file)', 'start': '2025-01-06T09:00',
         'end': '2025-01-06T10:00', 'repeat': 'weekly'},
    ]))
    return JsonFileEventStore(path)


def test_import_skips_existing_ids(tmp_path, weekly_event):
    source = _write_source(tmp_path / 'events.json')
    target = MemoryEventStore([weekly_event])
    assert import_events(source, target) == (1, 1)
    assert target.get('weekly1').title == 'Chem lab'
    assert target.get('a1').category == 'activities'


def test_import_overwrite_replaces_existing(tmp_path, weekly_event):
    source = _write_source(tmp_path / 'events.json')
    target = MemoryEventStore([weekly_event])
    assert import_events(source, target, overwrite=True) == (2, 0)
    assert target.get('weekly1').title == 'Chem lab (file)'
