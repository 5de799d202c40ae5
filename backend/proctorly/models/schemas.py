"""
Pydantic Schemas for API request/response validation
"""

from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


# ── Subject Schemas ──────────────────────────────────────
class SubjectSettings(BaseModel):
    focus_detection_enabled: bool = True
    object_detection_enabled: bool = True
    audio_detection_enabled: bool = True
    eye_closure_detection_enabled: bool = True


class SubjectCreate(BaseModel):
    # Presence is checked by the service so that a missing field is a ValidationError
    candidate_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    settings: Optional[SubjectSettings] = None


class SubjectUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None
    settings: Optional[SubjectSettings] = None

    class Config:
        extra = "allow"


class SubjectResponse(BaseModel):
    subject_id: str
    name: str
    email: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str
    total_duration_seconds: int
    focus_lost_count: int
    suspicious_event_count: int
    integrity_score: int
    media_path: Optional[str] = None
    settings: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


# ── Event Schemas ────────────────────────────────────────
class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float


class EventCreate(BaseModel):
    candidate_id: Optional[str] = None
    event_type: Optional[str] = None
    timestamp: Optional[datetime] = None
    confidence: Optional[float] = None
    bounding_box: Optional[BoundingBox] = None
    severity: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class EventResponse(BaseModel):
    id: int
    subject_id: str
    event_type: str
    timestamp: datetime
    confidence: Optional[float] = None
    bounding_box: Optional[Dict[str, float]] = None
    severity: str
    metadata: Dict[str, Any] = {}

    @classmethod
    def from_event(cls, event) -> "EventResponse":
        return cls(
            id=event.id,
            subject_id=event.subject_id,
            event_type=event.event_type,
            timestamp=event.timestamp,
            confidence=event.confidence,
            bounding_box=event.bounding_box,
            severity=event.severity,
            metadata=event.extra_data or {},
        )


class EventTypeSummary(BaseModel):
    event_type: str
    count: int
    avg_confidence: Optional[float] = None
    last_occurrence: Optional[datetime] = None


# ── Upload Schemas ───────────────────────────────────────
class UploadResponse(BaseModel):
    success: bool = True
    file_path: str
    file_name: str
    file_size: int
    candidate_id: str
