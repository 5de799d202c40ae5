"""
Proctorly Event Store
Append-only event log, queried by subject and time window.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from proctorly.core.database import store_errors
from proctorly.models.event import Event

logger = logging.getLogger("proctorly.store.events")


class EventStore:
    """Event persistence bound to one database session; the caller commits."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, event: Event) -> Event:
        with store_errors(self.db, f"append {event.event_type} for {event.subject_id}"):
            self.db.add(event)
            self.db.flush()
        return event

    def _window(self, query, start: Optional[datetime], end: Optional[datetime]):
        if start is not None:
            query = query.filter(Event.timestamp >= start)
        if end is not None:
            query = query.filter(Event.timestamp <= end)
        return query

    def query_by_subject(
        self,
        subject_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Event]:
        """All events for a subject in the window, oldest first"""
        with store_errors(self.db, f"query events for {subject_id}"):
            query = self._window(
                self.db.query(Event).filter(Event.subject_id == subject_id), start, end
            )
            return query.order_by(Event.timestamp.asc(), Event.id.asc()).all()

    def list_for_subject(
        self,
        subject_id: str,
        event_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Event]:
        """Most recent events first, optionally filtered by type"""
        with store_errors(self.db, f"list events for {subject_id}"):
            query = self.db.query(Event).filter(Event.subject_id == subject_id)
            if event_type:
                query = query.filter(Event.event_type == event_type)
            query = self._window(query, start, end)
            return query.order_by(Event.timestamp.desc(), Event.id.desc()).limit(limit).all()

    def type_summary(
        self,
        subject_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Per event type: count, mean confidence and last occurrence, busiest first"""
        count = func.count(Event.id).label("count")
        with store_errors(self.db, f"summarise events for {subject_id}"):
            query = self.db.query(
                Event.event_type,
                count,
                func.avg(Event.confidence).label("avg_confidence"),
                func.max(Event.timestamp).label("last_occurrence"),
            ).filter(Event.subject_id == subject_id)
            rows = (
                self._window(query, start, end)
                .group_by(Event.event_type)
                .order_by(count.desc(), Event.event_type.asc())
                .all()
            )
        return [
            {
                "event_type": row.event_type,
                "count": row.count,
                "avg_confidence": float(row.avg_confidence) if row.avg_confidence is not None else None,
                "last_occurrence": row.last_occurrence,
            }
            for row in rows
        ]
