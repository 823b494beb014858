from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def local_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def today_in(zone: ZoneInfo) -> date:
    """Calendar date of the condominium right now."""
    return datetime.now(timezone.utc).astimezone(zone).date()
