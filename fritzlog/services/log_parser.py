# fritzlog/services/log_parser.py
"""
Parses `data.lua?page=log` payloads into LogEntry values.

Payload shape (newest entry first):

    {"data": {"log": [
        ["31.12.23", "23:59:59", "Message text", "24", "1", "help-link"],
        ...
    ]}}

  [0] date (device local, dd.mm.yy)   [3] message id
  [1] time (device local, HH:MM:SS)   [4] category id (1..5)
  [2] message                         [5] help link (ignored)

The box folds repeated events itself and appends
" [N Meldungen seit dd.mm.yy HH:MM:SS]" to the message; that suffix is
stripped and kept as repeat_count / repeat_since.
"""

import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fritzlog.exceptions import ClockError, MalformedPayload
from fritzlog.models.log import LogCategory
from fritzlog.utils.clock import DeviceClock, clock as default_clock
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)

REPETITION_RE = re.compile(r" \[(\d+) Meldungen seit (\d+\.\d+\.\d+) (\d+:\d+:\d+)\]$")


@dataclass
class LogEntry:
    timestamp: datetime          # naive UTC
    message: str
    message_id: int
    category: LogCategory
    repeat_count: Optional[int] = None      # from the device's own repetition suffix
    repeat_since: Optional[datetime] = None

    def same_event(self, message_id: int, category_id: int, message: str) -> bool:
        return (
            self.message_id == message_id
            and int(self.category) == category_id
            and self.message == message
        )


def parse_row(row, clock: DeviceClock = default_clock) -> LogEntry:
    """Parse one raw log row. Raises ValueError / ClockError on bad input."""
    if not isinstance(row, (list, tuple)) or len(row) < 5:
        raise ValueError(f"expected a list of at least 5 fields, got {row!r}")

    date_str, time_str, message, message_id, category = row[:5]
    timestamp = clock.to_instant(str(date_str), str(time_str))

    message_id = int(message_id)
    if message_id < 0:
        raise ValueError(f"negative message id {message_id}")
    category = LogCategory(int(category))

    message = str(message)
    repeat_count, repeat_since = None, None
    match = REPETITION_RE.search(message)
    if match:
        repeat_count = int(match.group(1))
        repeat_since = clock.to_instant(match.group(2), match.group(3))
        message = message[: match.start()]

    return LogEntry(
        timestamp=timestamp,
        message=message,
        message_id=message_id,
        category=category,
        repeat_count=repeat_count,
        repeat_since=repeat_since,
    )


def parse_log_payload(raw_body: bytes, clock: DeviceClock = default_clock) -> list[LogEntry]:
    """
    Parse the whole payload, keeping the device order (newest first).
    Bad rows are skipped with a warning; an unusable payload raises MalformedPayload.
    """
    try:
        data = json.loads(raw_body.decode("utf-8", errors="replace"))
    except json.JSONDecodeError as e:
        raise MalformedPayload(f"response is not valid JSON: {e}", name="logs") from e

    section = data.get("data") if isinstance(data, dict) else None
    rows = section.get("log") if isinstance(section, dict) else None
    if not isinstance(rows, list):
        raise MalformedPayload("response has no data.log list", name="logs")

    entries = []
    for index, row in enumerate(rows):
        try:
            entries.append(parse_row(row, clock))
        except (ValueError, TypeError, ClockError) as e:
            logger.warning(f"⚠️  Skipping log row {index}: {e}")

    if rows and not entries:
        raise MalformedPayload(f"none of {len(rows)} log rows could be parsed", name="logs")

    return entries
