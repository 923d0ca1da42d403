# fritzlog/schemas/update.py
from pydantic import BaseModel
import datetime as dt


class UpdateOut(BaseModel):
    id: int
    datetime: dt.datetime
    upserted_rows: int

    class Config:
        from_attributes = True
