from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

from backend.recurrence import DEFAULT_CATEGORY, REPEAT_NONE, SeriesEvent, format_local, new_event_id

db = SQLAlchemy()


class CalendarEvent(db.Model):
    """
    Base calendar event, optionally repeating.
    start/end/until are naive local wall-clock datetimes. ex_dates and overrides
    are JSON keyed by the occurrence start in YYYY-MM-DDTHH:MM form.
    """
    id = db.Column(db.String(40), primary_key=True, default=new_event_id)
    title = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(30), nullable=False, default=DEFAULT_CATEGORY)
    start = db.Column(db.DateTime, nullable=False)
    end = db.Column(db.DateTime, nullable=False)
    repeat = db.Column(db.String(30), nullable=False, default=REPEAT_NONE)
    until = db.Column(db.DateTime, nullable=True)
    ex_dates = db.Column(db.JSON, nullable=True)
    overrides = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_series(self):
        return SeriesEvent.from_dict({
            'id': self.id,
            'title': self.title,
            'category': self.category,
            'start': self.start,
            'end': self.end,
            'repeat': self.repeat,
            'until': self.until,
            'ex_dates': self.ex_dates or [],
            'overrides': self.overrides or {},
        })

    def update_from_series(self, series):
        """Copy every field of a SeriesEvent onto this row (JSON columns are reassigned)."""
        data = series.to_dict()
        self.title = series.title
        self.category = series.category
        self.start = series.start
        self.end = series.end
        self.repeat = series.repeat or REPEAT_NONE
        self.until = series.until
        self.ex_dates = data['ex_dates']
        self.overrides = data['overrides']
        return self

    @classmethod
    def from_series(cls, series):
        return cls(id=series.id).update_from_series(series)

    def to_dict(self):
        data = self.to_series().to_dict()
        data['created_at'] = format_local(self.created_at)
        data['updated_at'] = format_local(self.updated_at)
        return data
