# fritzlog/schemas/log.py
from pydantic import BaseModel
import datetime as dt
from typing import Optional


class LogOut(BaseModel):
    id: int
    datetime: dt.datetime
    message: str
    message_id: int
    category_id: int
    repetition_datetime: Optional[dt.datetime]
    repetition_count: Optional[int]
    repetition_since: Optional[dt.datetime] = None

    class Config:
        from_attributes = True
