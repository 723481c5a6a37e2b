import calendar
from datetime import date

WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def month_days(year, month):
    _, count = calendar.monthrange(year, month)
    return [date(year, month, d) for d in range(1, count + 1)]


def first_day_offset(year, month):
    """Blank cells before the 1st in a Sunday-first grid."""
    return (date(year, month, 1).weekday() + 1) % 7


def week_count(year, month):
    cells = first_day_offset(year, month) + calendar.monthrange(year, month)[1]
    return -(-cells // 7)


def month_range(year, month):
    days = month_days(year, month)
    return days[0].isoformat(), days[-1].isoformat()


def shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def parse_month(value, today=None):
    """``YYYY-MM`` to ``(year, month)``; falls back to the current month."""
    today = today or date.today()
    try:
        year, month = (int(p) for p in (value or "").split("-"))
        date(year, month, 1)
    except ValueError:
        return today.year, today.month
    return year, month


def parse_tasks(value):
    if isinstance(value, list):
        items = value
    else:
        items = (value or "").split(",")
    return [t.strip() for t in items if isinstance(t, str) and t.strip()]


def build_month_grid(year, month, events, selected=None, today=None):
    today = today or date.today()
    by_date = {}
    for event in events:
        by_date.setdefault(event.get("date"), []).append(event)

    cells = [None] * first_day_offset(year, month)
    for day in month_days(year, month):
        key = day.isoformat()
        cells.append({
            "date": key,
            "day": day.day,
            "events": by_date.get(key, []),
            "selected": key == selected,
            "today": day == today,
        })
    cells.extend([None] * (-len(cells) % 7))
    weeks = [cells[i:i + 7] for i in range(0, len(cells), 7)]

    prev_year, prev_month = shift_month(year, month, -1)
    next_year, next_month = shift_month(year, month, 1)
    return {
        "title": date(year, month, 1).strftime("%B %Y"),
        "labels": WEEKDAY_LABELS,
        "weeks": weeks,
        "prev": f"{prev_year:04d}-{prev_month:02d}",
        "next": f"{next_year:04d}-{next_month:02d}",
        "current": f"{year:04d}-{month:02d}",
    }
