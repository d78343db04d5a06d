import calendar

from backend.recurrence import (
    REPEAT_DAILY,
    REPEAT_MONTHLY_DAY,
    REPEAT_MONTHLY_NTH_WEEKDAY,
    REPEAT_NONE,
    REPEAT_WEEKLY,
    REPEAT_YEARLY,
    weekday_occurrence_in_month,
)


def ordinal(n: int) -> str:
    """1 -> '1st', 12 -> '12th', 23 -> '23rd'."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def repeat_labels(start) -> dict:
    """Human labels for each repeat option, phrased relative to the first occurrence."""
    weekday = calendar.day_name[start.weekday()]
    month = calendar.month_name[start.month]
    nth = weekday_occurrence_in_month(start)
    return {
        REPEAT_NONE: "Does not repeat",
        REPEAT_DAILY: "Daily",
        REPEAT_WEEKLY: f"Weekly on {weekday}",
        REPEAT_MONTHLY_DAY: f"Monthly on the {ordinal(start.day)}",
        REPEAT_MONTHLY_NTH_WEEKDAY: f"Monthly on the {ordinal(nth)} {weekday}",
        REPEAT_YEARLY: f"Yearly on {month} {ordinal(start.day)}",
    }


def describe_repeat(event) -> str:
    return repeat_labels(event.start).get(event.repeat or REPEAT_NONE, "Does not repeat")


def search_matches(event, query: str) -> bool:
    needle = " ".join(str(query or "").split()).lower()
    if not needle:
        return False
    haystack = f"{event.title or ''} {event.category or ''}".lower()
    return needle in haystack
