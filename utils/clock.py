from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import current_app


def local_now() -> datetime:
    tz = ZoneInfo(current_app.config.get("APP_TIMEZONE", "Asia/Seoul"))
    return datetime.now(tz)


def local_today() -> date:
    """Calendar day in the school's timezone; all booking windows count from here."""
    return local_now().date()


def parse_day(value):
    """Parse "YYYY-MM-DD"; returns None for empty input, raises ValueError otherwise."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())
