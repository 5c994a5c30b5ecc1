from datetime import datetime, timedelta, timezone

IST = timezone(timedelta(hours=5, minutes=30))


def get_ist_now() -> datetime:
    """Current time in IST as a naive datetime (how every column stores it)."""
    return datetime.now(IST).replace(tzinfo=None)
