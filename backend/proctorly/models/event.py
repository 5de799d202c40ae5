"""
Event Model
Append-only log of classified monitoring events.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Index
from datetime import datetime
from proctorly.core.database import Base


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_subject_timestamp", "subject_id", "timestamp"),
        Index("ix_events_type_timestamp", "event_type", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(String(100), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)
    confidence = Column(Float, nullable=True)
    bounding_box = Column(JSON, nullable=True)  # {x, y, width, height}
    severity = Column(String(20), nullable=False, default="medium")  # low, medium, high, critical

    # "metadata" is reserved on declarative classes
    extra_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<Event(id={self.id}, subject={self.subject_id}, type={self.event_type})>"

    def to_dict(self):
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "confidence": self.confidence,
            "severity": self.severity,
            "bounding_box": self.bounding_box,
            "metadata": self.extra_data or {},
        }
