# fritzlog/routers/logs.py
"""
Read-only views over the reconciled router log.
GET /logs    — newest first, optional category filter.
GET /updates — poll cycle history.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from fritzlog.database import get_db
from fritzlog.models.log import Log
from fritzlog.models.update import Update
from fritzlog.schemas.log import LogOut
from fritzlog.schemas.update import UpdateOut

router = APIRouter()


@router.get("/logs", response_model=list[LogOut], summary="Router event log — newest first")
def list_logs(
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    category_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    q = db.query(Log)
    if category_id is not None:
        q = q.filter(Log.category_id == category_id)
    return q.order_by(Log.id.desc()).offset(offset).limit(limit).all()


@router.get("/updates", response_model=list[UpdateOut], summary="Poll cycle history")
def list_updates(limit: int = Query(50, ge=1, le=1000), db: Session = Depends(get_db)):
    return db.query(Update).order_by(Update.id.desc()).limit(limit).all()
