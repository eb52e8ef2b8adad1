"""Local-time helpers for the serving timezone."""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def today_ymd(tz_name: str, now: Optional[datetime] = None) -> str:
    """Calendar date (YYYY-MM-DD) in the given timezone."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).strftime("%Y-%m-%d")


def to_local(kickoff_utc: datetime, tz_name: str) -> datetime:
    if kickoff_utc.tzinfo is None:
        kickoff_utc = kickoff_utc.replace(tzinfo=timezone.utc)
    return kickoff_utc.astimezone(ZoneInfo(tz_name))


def local_label(kickoff_utc: datetime, tz_name: str) -> str:
    """Kickoff as "YYYY-MM-DD HH:MM" local time."""
    return to_local(kickoff_utc, tz_name).strftime("%Y-%m-%d %H:%M")


def local_hour(kickoff_utc: datetime, tz_name: str) -> int:
    return to_local(kickoff_utc, tz_name).hour
