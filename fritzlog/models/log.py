# fritzlog/models/log.py
"""
Router event log table.
One row per event as shown by the FRITZ!Box, newest last (ascending id).
Consecutive identical events are collapsed into one row with a repetition count.
"""

import enum

from sqlalchemy import Column, BigInteger, Integer, DateTime, Text, UniqueConstraint, Index
from fritzlog.database import Base


class LogCategory(enum.IntEnum):
    SYSTEM = 1      # "System"
    INTERNET = 2    # "Internetverbindung"
    PHONE = 3       # "Telefonie"
    WLAN = 4        # "WLAN"
    USB = 5         # "USB-Geräte"


class Log(Base):
    __tablename__ = "logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    datetime = Column(DateTime, nullable=False)
    message = Column(Text, nullable=False)
    message_id = Column(BigInteger, nullable=False)
    category_id = Column(Integer, nullable=False, index=True)
    repetition_datetime = Column(DateTime, nullable=True)   # most recent occurrence
    repetition_count = Column(BigInteger, nullable=True)
    repetition_since = Column(DateTime, nullable=True)      # run start the router reported ("seit")

    __table_args__ = (
        UniqueConstraint("datetime", "message_id", "category_id", name="uq_logs_datetime_message_category"),
        Index("ix_logs_datetime", "datetime"),
    )

    def __repr__(self):
        rep = f" x{self.repetition_count}" if self.repetition_count else ""
        return f"<Log {self.id} [{self.message_id}, {self.category_id}] {self.datetime}{rep}>"
