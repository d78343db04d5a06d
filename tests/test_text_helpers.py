from datetime import datetime

from backend.recurrence import SeriesEvent
from text_helpers import describe_repeat, ordinal, repeat_labels, search_matches


def test_ordinal_suffixes():
    assert [ordinal(n) for n in (1, 2, 3, 4, 11, 12, 13, 21, 22, 23, 31)] == [
        '1st', '2nd', '3rd', '4th', '11th', '12th', '13th', '21st', '22nd', '23rd', '31st'
    ]


def test_repeat_labels_follow_first_occurrence():
    labels = repeat_labels(datetime(2025, 1, 21, 18, 0))
    assert labels == {
        'none': 'Does not repeat',
        'daily': 'Daily',
        'weekly': 'Weekly on Tuesday',
        'monthly_day': 'Monthly on the 21st',
        'monthly_nth_weekday': 'Monthly on the 3rd Tuesday',
        'yearly': 'Yearly on January 21st',
    }


def test_describe_repeat(weekly_event):
    assert describe_repeat(weekly_event) == 'Weekly on Monday'
    weekly_event.repeat = 'none'
    assert describe_repeat(weekly_event) == 'Does not repeat'


def test_search_matches_title_and_category():
    event = SeriesEvent(id='x', title='Soccer   Practice', category='activities',
                        start=datetime(2025, 1, 6, 16, 0), end=datetime(2025, 1, 6, 17, 0))
    assert search_matches(event, 'soccer')
    assert search_matches(event, 'ACTIVITIES')
    assert not search_matches(event, 'chess')
    assert not search_matches(event, '   ')
