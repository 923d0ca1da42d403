# fritzlog/utils/clock.py
"""
Converts between the router's local wall-clock strings and naive UTC instants.

The FRITZ!Box reports `31.12.23` / `23:59:59` in its own timezone without an
offset. Everything stored in the database is naive UTC.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from fritzlog.config import settings
from fritzlog.exceptions import ClockError
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)

DATE_FORMAT = "%d.%m.%y"
TIME_FORMAT = "%H:%M:%S"


class DeviceClock:
    def __init__(self, tz_name: str = None):
        self.tz = ZoneInfo(tz_name or settings.DEVICE_TIMEZONE)

    def localize(self, naive_local: datetime) -> datetime:
        """
        Attach the device timezone to a wall-clock time.
        Times inside the autumn fold resolve to their first occurrence.
        Raises ClockError for times inside the spring gap.
        """
        first = naive_local.replace(tzinfo=self.tz, fold=0)
        second = naive_local.replace(tzinfo=self.tz, fold=1)
        if first.utcoffset() == second.utcoffset():
            return first

        # A wall time that survives the round trip through UTC exists, so it is a fold
        round_trip = first.astimezone(timezone.utc).astimezone(self.tz).replace(tzinfo=None)
        if round_trip != naive_local:
            raise ClockError(f"non-existent local time {naive_local} in {self.tz.key}")
        logger.warning(f"⚠️  Ambiguous local time {naive_local} in {self.tz.key}, assuming the first occurrence")
        return first

    def to_instant(self, date_str: str, time_str: str) -> datetime:
        """`31.12.23`, `23:59:59` (device local) → naive UTC datetime."""
        try:
            naive = datetime.strptime(f"{date_str.strip()} {time_str.strip()}", f"{DATE_FORMAT} {TIME_FORMAT}")
        except ValueError as e:
            raise ClockError(f"cannot parse {date_str!r} {time_str!r}: {e}") from e
        return self.localize(naive).astimezone(timezone.utc).replace(tzinfo=None)

    def to_local(self, instant: datetime) -> datetime:
        """Naive UTC → aware datetime in the device timezone."""
        return instant.replace(tzinfo=timezone.utc).astimezone(self.tz)

    @staticmethod
    def utcnow() -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


clock = DeviceClock()
