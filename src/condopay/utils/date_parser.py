"""Due-date parsing utilities."""

from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a due-date string into a date object.

    Supports:
    - Absolute dates: "2024-01-15", "15/01/2024" (day first), "January 15, 2024"
    - "today", "tomorrow", "yesterday"
    - "end of month", "end of next month"
    - "in N days"

    Args:
        date_str: Date string
        today: Reference date for relative expressions (defaults to today)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = today or date.today()

    relative = {
        "today": today,
        "tomorrow": today + timedelta(days=1),
        "yesterday": today - timedelta(days=1),
    }
    if text in relative:
        return relative[text]

    if text == "end of month":
        return today + relativedelta(day=31)
    if text == "end of next month":
        return today + relativedelta(months=1, day=31)

    if text.startswith("in ") and text.endswith(" days"):
        count = text[3:-5].strip()
        if count.isdigit():
            return today + timedelta(days=int(count))

    try:
        # ISO dates are unambiguous; everything else is read day-first
        if len(text) == 10 and text[4] == "-":
            return date.fromisoformat(text)
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}'") from e
