"""
Subject Model
One record per monitored session (candidate / interviewee).
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime
from proctorly.core.database import Base


def default_settings() -> dict:
    return {
        "focus_detection_enabled": True,
        "object_detection_enabled": True,
        "audio_detection_enabled": True,
        "eye_closure_detection_enabled": True,
    }


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)

    start_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_time = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active, completed, terminated
    total_duration_seconds = Column(Integer, nullable=False, default=0)

    # Counters only move through SubjectStore.compare_and_update_counters
    focus_lost_count = Column(Integer, nullable=False, default=0)
    suspicious_event_count = Column(Integer, nullable=False, default=0)
    integrity_score = Column(Integer, nullable=False, default=100)

    media_path = Column(String(500), nullable=True)
    settings = Column(JSON, nullable=False, default=default_settings)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Subject(subject_id={self.subject_id}, status={self.status}, score={self.integrity_score})>"

    def elapsed_seconds(self, now: datetime = None) -> int:
        """Stored duration once ended, otherwise time since start."""
        if self.total_duration_seconds:
            return self.total_duration_seconds
        end = self.end_time or now or datetime.utcnow()
        return max(int((end - self.start_time).total_seconds()), 0)
