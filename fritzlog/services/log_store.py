# fritzlog/services/log_store.py
"""
Store for reconciled router logs.

  read_tail(limit)           — newest `limit` rows, returned oldest-first (ascending id)
  upsert_batch(ins, upd)     — one transaction; an insert whose
                               (datetime, message_id, category_id) already exists is a no-op
  record_update(rows)        — per-cycle history row
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from fritzlog.database import SessionLocal
from fritzlog.exceptions import StoreIOFailure
from fritzlog.models.log import Log
from fritzlog.models.update import Update
from fritzlog.utils.clock import DeviceClock
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)

UNIQUE_KEY = ["datetime", "message_id", "category_id"]


@dataclass
class StoredLogRow:
    id: int
    datetime: datetime
    message: str
    message_id: int
    category_id: int
    repetition_datetime: Optional[datetime] = None
    repetition_count: Optional[int] = None
    repetition_since: Optional[datetime] = None

    @property
    def last_seen(self) -> datetime:
        return self.repetition_datetime or self.datetime

    @classmethod
    def from_model(cls, log: Log) -> "StoredLogRow":
        return cls(
            id=log.id,
            datetime=log.datetime,
            message=log.message,
            message_id=log.message_id,
            category_id=log.category_id,
            repetition_datetime=log.repetition_datetime,
            repetition_count=log.repetition_count,
            repetition_since=log.repetition_since,
        )


@dataclass
class NewLogRow:
    datetime: datetime
    message: str
    message_id: int
    category_id: int
    repetition_datetime: Optional[datetime] = None
    repetition_count: Optional[int] = None
    repetition_since: Optional[datetime] = None


@dataclass
class RepetitionUpdate:
    id: int
    repetition_datetime: datetime
    repetition_count: int


class LogStore:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def read_tail(self, limit: int) -> list[StoredLogRow]:
        db = self._session_factory()
        try:
            rows = db.execute(select(Log).order_by(Log.id.desc()).limit(limit)).scalars().all()
            return [StoredLogRow.from_model(r) for r in reversed(rows)]
        except SQLAlchemyError as e:
            raise StoreIOFailure(f"read tail: {e}") from e
        finally:
            db.close()

    def upsert_batch(self, inserts: list[NewLogRow], updates: list[RepetitionUpdate] = ()) -> int:
        """Apply all inserts and updates atomically. Returns rows affected."""
        if not inserts and not updates:
            return 0

        db = self._session_factory()
        try:
            dialect = db.get_bind().dialect.name
            affected = 0
            for row in updates:
                result = db.execute(
                    update(Log)
                    .where(Log.id == row.id)
                    .values(repetition_datetime=row.repetition_datetime, repetition_count=row.repetition_count)
                )
                affected += result.rowcount
            for row in inserts:
                affected += self._insert_ignore(db, dialect, row)
            db.commit()
            return affected
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Log batch rolled back: {e}")
            raise StoreIOFailure(f"upsert batch: {e}") from e
        finally:
            db.close()

    @staticmethod
    def _insert_ignore(db, dialect: str, row: NewLogRow) -> int:
        values = asdict(row)
        if dialect == "postgresql":
            stmt = pg_insert(Log).values(**values).on_conflict_do_nothing(index_elements=UNIQUE_KEY)
        elif dialect == "sqlite":
            stmt = sqlite_insert(Log).values(**values).on_conflict_do_nothing(index_elements=UNIQUE_KEY)
        else:
            exists = db.execute(
                select(Log.id).where(
                    Log.datetime == row.datetime,
                    Log.message_id == row.message_id,
                    Log.category_id == row.category_id,
                )
            ).first()
            if exists:
                return 0
            stmt = insert(Log).values(**values)

        result = db.execute(stmt)
        if result.rowcount == 0:
            logger.debug(f"Skipped already stored log {row.datetime} [{row.message_id}, {row.category_id}]")
        return result.rowcount

    def record_update(self, upserted_rows: int):
        db = self._session_factory()
        try:
            db.add(Update(datetime=DeviceClock.utcnow(), upserted_rows=upserted_rows))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreIOFailure(f"record update: {e}") from e
        finally:
            db.close()

