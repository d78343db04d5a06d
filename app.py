import os
from datetime import datetime

import pytz
from dotenv import load_dotenv
from flask import Flask, jsonify, request

load_dotenv()

from models import db
from backend.event_store import EventStoreError, JsonFileEventStore, SqlEventStore

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///dorado.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['EVENT_STORE'] = os.environ.get('EVENT_STORE', 'sql').lower()  # sql | file
app.config['EVENT_DATA_FILE'] = os.environ.get('EVENT_DATA_FILE', os.path.join('data', 'events.json'))
app.config['APP_TIMEZONE'] = os.environ.get('APP_TIMEZONE', 'America/Los_Angeles')
app.config['SEARCH_RESULT_LIMIT'] = int(os.environ.get('SEARCH_RESULT_LIMIT', 50))

db.init_app(app)

with app.app_context():
    db.create_all()


def _now_local():
    """Current wall-clock time in the configured zone, as a naive datetime."""
    try:
        tz = pytz.timezone(app.config.get('APP_TIMEZONE') or 'UTC')
    except pytz.UnknownTimeZoneError:
        app.logger.warning("Unknown APP_TIMEZONE %s, using UTC", app.config.get('APP_TIMEZONE'))
        tz = pytz.UTC
    return datetime.now(tz).replace(tzinfo=None)


def get_event_store():
    """Store selected by EVENT_STORE; file store path comes from EVENT_DATA_FILE."""
    if app.config.get('EVENT_STORE') == 'file':
        return JsonFileEventStore(app.config['EVENT_DATA_FILE'])
    return SqlEventStore(db.session)


@app.errorhandler(EventStoreError)
def _handle_store_error(exc):
    app.logger.error("Event store failure: %s", exc)
    return jsonify({'error': 'Could not save events'}), 500


@app.route('/api/health')
def health():
    return jsonify({'status': 'ok', 'store': app.config.get('EVENT_STORE')})


@app.route('/api/events', methods=['GET', 'POST'])
def calendar_events():
    from services import calendar_routes
    if request.method == 'POST':
        return calendar_routes.create_event()
    return calendar_routes.list_events()


@app.route('/api/events/search')
def calendar_search():
    from services import calendar_routes
    return calendar_routes.search_events()


@app.route('/api/events/<event_id>', methods=['GET', 'PUT', 'DELETE'])
def calendar_event_detail(event_id):
    from services import calendar_routes
    return calendar_routes.event_detail(event_id)


@app.route('/api/repeat-labels')
def repeat_labels():
    from services import calendar_routes
    return calendar_routes.repeat_label_options()


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 3000)), debug=True)
