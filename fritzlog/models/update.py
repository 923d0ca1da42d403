# fritzlog/models/update.py
"""
Poll cycle history: one row per successful reconciliation.
"""

from sqlalchemy import Column, BigInteger, Integer, DateTime
from fritzlog.database import Base


class Update(Base):
    __tablename__ = "updates"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    datetime = Column(DateTime, nullable=False, index=True)
    upserted_rows = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<Update {self.id} {self.datetime} rows={self.upserted_rows}>"
