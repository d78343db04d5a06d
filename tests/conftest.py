import os

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('EVENT_STORE', 'sql')
os.environ.setdefault('APP_TIMEZONE', 'UTC')

from datetime import datetime

import pytest

from backend.recurrence import SeriesEvent


@pytest.fixture
def flask_app():
    from app import app, db

    app.config.update(TESTING=True, EVENT_STORE='sql')
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def weekly_event():
    return SeriesEvent(
        id='weekly1',
        title='Chem lab',
        category='school',
        start=datetime(2025, 1, 6, 9, 0),
        end=datetime(2025, 1, 6, 10, 0),
        repeat='weekly',
    )
