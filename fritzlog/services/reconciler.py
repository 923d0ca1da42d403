# fritzlog/services/reconciler.py
"""
Merges a fetched router log snapshot into the stored log table.

The router keeps a short scrolling buffer with no ids and no cursor, so every
poll returns an overlapping window. To find out what is new:

  1. Reverse the snapshot to oldest-first (the table's insertion order).
  2. Find the anchor: the newest stored row that also appears in the snapshot.
  3. Everything after the anchor in the snapshot is a candidate, as long as it
     is not older than the anchor or the newest stored row.
  4. Candidates identical to the row just before them (pending insert, or the
     newest stored row) are folded into that row's repetition count.
  5. The resulting inserts/updates are written in one transaction.

Without an anchor the buffer rotated past everything we know. Only entries
strictly newer than the newest stored row are placed and the gap is logged.
Entries lost to rotation combined with identical timestamps can't be recovered.
"""

from dataclasses import dataclass, field
from typing import Optional

from fritzlog.config import settings
from fritzlog.services.log_parser import LogEntry
from fritzlog.services.log_store import LogStore, NewLogRow, RepetitionUpdate, StoredLogRow
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ReconcilePlan:
    inserts: list[NewLogRow] = field(default_factory=list)
    updates: list[RepetitionUpdate] = field(default_factory=list)
    anchor: Optional[StoredLogRow] = None
    anchor_index: Optional[int] = None
    gap: bool = False
    skipped: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.inserts and not self.updates


def covers(row: StoredLogRow, entry: LogEntry) -> bool:
    """True if `entry` is an occurrence already represented by `row`."""
    if entry.message_id != row.message_id or int(entry.category) != row.category_id:
        return False
    if entry.timestamp == row.datetime:
        return True
    if row.repetition_datetime is not None and row.datetime <= entry.timestamp <= row.repetition_datetime:
        return True
    if entry.repeat_since is None:
        return False
    # Box folded later occurrences into the entry we stored earlier,
    # or refreshed a folded entry we stored with the same run start
    return entry.repeat_since in (row.datetime, row.repetition_since)


def find_anchor(entries: list[LogEntry], tail: list[StoredLogRow]):
    """
    `entries` and `tail` are both oldest-first.
    Returns (row, index) of the newest stored row found in `entries`, or (None, None).
    """
    for row in reversed(tail):
        for index in range(len(entries) - 1, -1, -1):
            if covers(row, entries[index]):
                return row, index
    return None, None


def _merged_count(current: Optional[int], entry: LogEntry) -> int:
    count = (current or 1) + 1
    if entry.repeat_count:
        count = max(count, entry.repeat_count)
    return count


def _new_row(entry: LogEntry) -> NewLogRow:
    row = NewLogRow(
        datetime=entry.timestamp,
        message=entry.message,
        message_id=entry.message_id,
        category_id=int(entry.category),
    )
    if entry.repeat_count and entry.repeat_count >= 2:
        row.repetition_count = entry.repeat_count
        row.repetition_datetime = entry.timestamp
        row.repetition_since = entry.repeat_since
    return row


def plan_reconciliation(fetched_newest_first: list[LogEntry], tail: list[StoredLogRow]) -> ReconcilePlan:
    """Pure planning step: decides what to insert and update, touches nothing."""
    plan = ReconcilePlan()
    entries = list(reversed(fetched_newest_first))
    if not entries:
        return plan

    newest = tail[-1] if tail else None
    newest_update: Optional[RepetitionUpdate] = None

    if newest is None:
        candidates = entries
        floor = None
    else:
        anchor, anchor_index = find_anchor(entries, tail)
        plan.anchor, plan.anchor_index = anchor, anchor_index

        if anchor is None:
            plan.gap = True
            logger.warning(
                f"⚠️  Log gap: no overlap between stored tail (newest {newest.last_seen}) and "
                f"fetched window ({entries[0].timestamp} … {entries[-1].timestamp}); "
                f"older router entries were lost to rotation"
            )
            candidates = [e for e in entries if e.timestamp > newest.last_seen]
            floor = newest.datetime
        else:
            anchor_entry = entries[anchor_index]
            if anchor is newest and anchor_entry.repeat_count and anchor_entry.timestamp > newest.last_seen:
                newest_update = RepetitionUpdate(
                    id=newest.id,
                    repetition_datetime=anchor_entry.timestamp,
                    repetition_count=max(newest.repetition_count or 1, anchor_entry.repeat_count),
                )
            floor = max(anchor_entry.timestamp, newest.datetime)
            candidates = [
                e for e in entries[anchor_index + 1:]
                if not any(covers(r, e) for r in tail)
            ]

    pending: Optional[NewLogRow] = None
    last_placed = floor
    for entry in candidates:
        if last_placed is not None and entry.timestamp < last_placed:
            plan.skipped += 1
            logger.warning(
                f"⚠️  Skipping out-of-order log {entry.timestamp} [{entry.message_id}, "
                f"{int(entry.category)}] older than {last_placed}"
            )
            continue
        last_placed = entry.timestamp

        if pending is not None:
            if entry.same_event(pending.message_id, pending.category_id, pending.message):
                pending.repetition_count = _merged_count(pending.repetition_count, entry)
                pending.repetition_datetime = entry.timestamp
                continue
        elif newest is not None and not plan.gap and entry.same_event(newest.message_id, newest.category_id, newest.message):
            current = newest_update.repetition_count if newest_update else newest.repetition_count
            newest_update = RepetitionUpdate(
                id=newest.id,
                repetition_datetime=entry.timestamp,
                repetition_count=_merged_count(current, entry),
            )
            continue

        pending = _new_row(entry)
        plan.inserts.append(pending)

    if newest_update is not None:
        plan.updates.append(newest_update)
    return plan


class Reconciler:
    def __init__(self, store: LogStore, tail_window: int = None):
        self.store = store
        self.tail_window = tail_window or settings.TAIL_WINDOW

    def reconcile(self, fetched_newest_first: list[LogEntry]) -> int:
        """Merge one snapshot into the store. Returns rows affected."""
        tail = self.store.read_tail(self.tail_window)
        plan = plan_reconciliation(fetched_newest_first, tail)
        if plan.is_empty:
            logger.debug("No new log entries")
            return 0

        affected = self.store.upsert_batch(plan.inserts, plan.updates)
        logger.info(
            f"📝 Reconciled snapshot: {len(plan.inserts)} new, {len(plan.updates)} repetition "
            f"update(s), {affected} row(s) affected"
            + (" (after gap)" if plan.gap else "")
        )
        return affected
