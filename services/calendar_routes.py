"""Calendar event route handlers extracted from app.py."""

from datetime import datetime, time, timedelta

from backend.recurrence import (
    DEFAULT_CATEGORY,
    LEGACY_DAY_END,
    LEGACY_DAY_START,
    SeriesEvent,
    build_occurrence,
    expand_all,
    format_local,
    new_event_id,
)
from backend.series_scope import (
    SCOPE_SINGLE,
    apply_delete_scope,
    apply_edit_scope,
    apply_series_patch,
)
from services.validation_service import (
    normalize_category,
    normalize_repeat,
    normalize_scope,
    normalize_sort,
    parse_datetime_value,
    parse_day_value,
    parse_limit,
    start_of_week,
)
from text_helpers import describe_repeat, repeat_labels, search_matches

SORT_KEYS = {
    'start': lambda ev: (ev.start, ev.title.lower()),
    'title': lambda ev: (ev.title.lower(), ev.start),
    'category': lambda ev: (ev.category, ev.start),
}


def _parse_patch(data):
    """Validate the editable fields present in ``data``; returns (patch, error)."""
    patch = {}
    if 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            return None, 'Title cannot be empty'
        patch['title'] = title
    for name in ('start', 'end'):
        if name in data:
            value = parse_datetime_value(data.get(name))
            if value is None:
                return None, f'Invalid {name}'
            patch[name] = value
    if 'category' in data:
        category = normalize_category(data.get('category'))
        if not category:
            return None, 'Invalid category'
        patch['category'] = category
    if 'repeat' in data:
        repeat = normalize_repeat(data.get('repeat'))
        if not repeat:
            return None, 'Invalid repeat'
        patch['repeat'] = repeat
    return patch, None


def _has_invalid_interval(change, occurrence_key=None):
    for event in change.added + change.replaced:
        if event.end <= event.start:
            return True
        if occurrence_key is not None and occurrence_key in event.overrides:
            occurrence = build_occurrence(event, occurrence_key)
            if occurrence.end <= occurrence.start:
                return True
    return False


def _parse_scoped_request(data, args):
    """Pull occurrence_key/scope from the JSON body, falling back to the query string."""
    raw_key = data.get('occurrence_key') or args.get('occurrence_key')
    raw_scope = data.get('scope') or args.get('scope')
    if not raw_key:
        return None, None, None
    key = parse_datetime_value(raw_key)
    if key is None:
        return None, None, 'Invalid occurrence_key'
    scope = normalize_scope(raw_scope)
    if not scope:
        return None, None, 'scope must be one of single, future, cancel'
    return key, scope, None


def list_events():
    import app as a
    jsonify = a.jsonify
    request = a.request
    store = a.get_event_store()

    category = None
    if request.args.get('category'):
        category = normalize_category(request.args.get('category'))
        if not category:
            return jsonify({'error': 'Invalid category'}), 400

    # Range fetch for the week view: occurrences in [start, end)
    if request.args.get('start') or request.args.get('end'):
        start_raw = request.args.get('start')
        end_raw = request.args.get('end')
        if start_raw:
            range_start = parse_datetime_value(start_raw)
            if not range_start:
                return jsonify({'error': 'Invalid start'}), 400
        else:
            range_start = datetime.combine(start_of_week(a._now_local().date()), time())
        if end_raw:
            range_end = parse_datetime_value(end_raw)
            if not range_end:
                return jsonify({'error': 'Invalid end'}), 400
        else:
            range_end = range_start + timedelta(days=7)
        if range_end <= range_start:
            return jsonify({'error': 'end must be after start'}), 400

        occurrences = expand_all(store.list_events(), range_start, range_end, category=category)
        return jsonify({
            'start': format_local(range_start),
            'end': format_local(range_end),
            'occurrences': [occ.to_dict() for occ in occurrences]
        })

    sort_field = normalize_sort(request.args.get('sort'))
    if not sort_field:
        return jsonify({'error': 'Invalid sort'}), 400
    order = (request.args.get('order') or 'asc').lower()
    if order not in ('asc', 'desc'):
        return jsonify({'error': 'Invalid order'}), 400

    events = [ev for ev in store.list_events() if not category or ev.category == category]
    events.sort(key=SORT_KEYS[sort_field], reverse=(order == 'desc'))
    return jsonify([ev.to_dict() for ev in events])


def create_event():
    import app as a
    app = a.app
    jsonify = a.jsonify
    request = a.request

    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    if not title:
        return jsonify({'error': 'Title is required'}), 400

    start = parse_datetime_value(data.get('start'))
    end = parse_datetime_value(data.get('end'))
    if start is None and data.get('date'):
        # Older clients post {title, date, category} only.
        day = parse_day_value(data.get('date'))
        if not day:
            return jsonify({'error': 'Invalid date'}), 400
        start = datetime.combine(day, LEGACY_DAY_START)
        end = end or datetime.combine(day, LEGACY_DAY_END)
    if start is None:
        return jsonify({'error': 'Invalid start'}), 400
    if end is None:
        return jsonify({'error': 'Invalid end'}), 400
    if end <= start:
        return jsonify({'error': 'End must be after start'}), 400

    category = normalize_category(data.get('category'), default=DEFAULT_CATEGORY)
    if not category:
        return jsonify({'error': 'Invalid category'}), 400
    repeat = normalize_repeat(data.get('repeat'))
    if not repeat:
        return jsonify({'error': 'Invalid repeat'}), 400

    event = SeriesEvent(
        id=new_event_id(),
        title=title,
        category=category,
        start=start,
        end=end,
        repeat=repeat,
    )
    a.get_event_store().add(event)
    app.logger.info("Created event %s repeat=%s", event.id, repeat)
    return jsonify(event.to_dict()), 201


def event_detail(event_id):
    import app as a
    app = a.app
    jsonify = a.jsonify
    request = a.request
    store = a.get_event_store()

    event = store.get(event_id)
    if not event:
        return jsonify({'error': 'Not found'}), 404

    if request.method == 'GET':
        data = event.to_dict()
        data['repeat_label'] = describe_repeat(event)
        return jsonify(data)

    data = request.get_json(silent=True) or {}
    key, scope, error = _parse_scoped_request(data, request.args)
    if error and event.is_repeating:
        return jsonify({'error': error}), 400

    if request.method == 'DELETE':
        if event.is_repeating and key is not None:
            change = apply_delete_scope(event, key, scope)
        else:
            change = apply_delete_scope(event, None, SCOPE_SINGLE)
        store.apply(change)
        app.logger.info("Delete on event %s scope=%s removed=%s", event.id, scope, change.removed)
        return jsonify(change.to_dict())

    patch, error = _parse_patch(data)
    if error:
        return jsonify({'error': error}), 400

    if event.is_repeating and key is not None:
        change = apply_edit_scope(event, key, scope, patch)
    else:
        change = apply_series_patch(event, patch)
    if _has_invalid_interval(change, key):
        return jsonify({'error': 'End must be after start'}), 400

    store.apply(change)
    if change.added:
        app.logger.info("Event %s split into %s", event.id, [ev.id for ev in change.added])
    return jsonify(change.to_dict())


def search_events():
    import app as a
    app = a.app
    jsonify = a.jsonify
    request = a.request

    query = (request.args.get('q') or request.args.get('query') or '').strip()
    if not query:
        return jsonify({'query': '', 'results': []})

    limit = parse_limit(
        request.args.get('limit'),
        default=app.config.get('SEARCH_RESULT_LIMIT', 50),
        maximum=max(app.config.get('SEARCH_RESULT_LIMIT', 50), 100)
    )
    matches = [ev for ev in a.get_event_store().list_events() if search_matches(ev, query)]
    matches.sort(key=SORT_KEYS['start'])

    results = []
    for ev in matches[:limit]:
        data = ev.to_dict()
        data['repeat_label'] = describe_repeat(ev)
        results.append(data)
    return jsonify({'query': query, 'results': results})


def repeat_label_options():
    import app as a
    jsonify = a.jsonify
    request = a.request

    raw = request.args.get('start')
    start = parse_datetime_value(raw) if raw else a._now_local()
    if start is None:
        return jsonify({'error': 'Invalid start'}), 400
    return jsonify({'start': format_local(start), 'labels': repeat_labels(start)})
