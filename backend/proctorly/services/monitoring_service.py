"""
Proctorly Monitoring Service
Operations exposed to the HTTP layer: subject lifecycle, event ingestion
with incremental rescoring, reporting and recording archive/replay.

One instance is bound to one database session. Each mutating operation
is a single transaction: an event is never stored without its counter
update, and a failed counter update discards the event.
"""

import logging
from datetime import datetime
from typing import Any, BinaryIO, Dict, List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from proctorly.core.database import get_db, store_errors
from proctorly.core.exceptions import NotFound, ValidationError
from proctorly.models.event import Event
from proctorly.models.event_types import (
    EventType,
    Severity,
    SubjectStatus,
    counter_deltas,
    parse_event_type,
)
from proctorly.models.subject import Subject, default_settings
from proctorly.services import range_streaming
from proctorly.services.event_store import EventStore
from proctorly.services.media_store import MediaStore, StoredMedia, get_media_store
from proctorly.services.stats_aggregator import StatisticsReport, aggregate
from proctorly.services.subject_store import COUNTER_FIELDS, SubjectStore
from proctorly.utils.timeutils import isoformat, to_naive_utc

logger = logging.getLogger("proctorly.monitoring")

UPDATABLE_FIELDS = frozenset({"name", "email", "status", "settings"})
BOUNDING_BOX_KEYS = ("x", "y", "width", "height")


def _validate_window(start: Optional[datetime], end: Optional[datetime]):
    start, end = to_naive_utc(start), to_naive_utc(end)
    if start is not None and end is not None and start > end:
        raise ValidationError("start_time must not be after end_time")
    return start, end


def _validate_bounding_box(box) -> Optional[Dict[str, float]]:
    if box is None:
        return None
    if hasattr(box, "model_dump"):
        box = box.model_dump()
    if not isinstance(box, dict) or any(k not in box for k in BOUNDING_BOX_KEYS):
        raise ValidationError("bounding_box requires x, y, width and height")
    try:
        return {k: float(box[k]) for k in BOUNDING_BOX_KEYS}
    except (TypeError, ValueError):
        raise ValidationError("bounding_box values must be numbers")


class MonitoringService:

    def __init__(self, db: Session, media_store: Optional[MediaStore] = None):
        self.db = db
        self.subjects = SubjectStore(db)
        self.events = EventStore(db)
        self.media = media_store or MediaStore()

    def _commit(self, action: str):
        with store_errors(self.db, action):
            self.db.commit()

    # ──────────────────────────────────────────────────────
    # Subjects
    # ──────────────────────────────────────────────────────

    def create_subject(self, subject_id: Optional[str], name: Optional[str],
                       email: Optional[str], settings: Optional[Dict[str, Any]] = None) -> Subject:
        if not subject_id or not name or not email:
            raise ValidationError("candidate_id, name, and email are required")

        merged = default_settings()
        merged.update(settings or {})
        subject = Subject(
            subject_id=subject_id,
            name=name,
            email=email,
            start_time=datetime.utcnow(),
            status=SubjectStatus.ACTIVE.value,
            total_duration_seconds=0,
            settings=merged,
        )
        try:
            self.subjects.create(subject)
            self.events.append(Event(
                subject_id=subject_id,
                event_type=EventType.INTERVIEW_STARTED.value,
                timestamp=subject.start_time,
                severity=Severity.LOW.value,
            ))
            self._commit(f"create subject {subject_id}")
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Session started for {subject_id}")
        return subject

    def get_subject(self, subject_id: str) -> Subject:
        return self.subjects.require(subject_id)

    def list_subjects(self, status: Optional[str] = None, limit: int = 50, skip: int = 0) -> List[Subject]:
        if status is not None and status not in {s.value for s in SubjectStatus}:
            raise ValidationError(f"Unknown status: {status}")
        return self.subjects.list(status=status, limit=limit, skip=skip)

    def update_subject(self, subject_id: str, fields: Dict[str, Any]) -> Subject:
        derived = COUNTER_FIELDS.intersection(fields)
        if derived:
            raise ValidationError(f"Derived fields cannot be updated: {', '.join(sorted(derived))}")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if "status" in fields and fields["status"] not in {s.value for s in SubjectStatus}:
            raise ValidationError(f"Unknown status: {fields['status']}")
        for key in ("name", "email"):
            if key in fields and not fields[key]:
                raise ValidationError(f"{key} must not be empty")
        if fields.get("settings") is not None:
            merged = dict(self.subjects.require(subject_id).settings or default_settings())
            merged.update(fields["settings"])
            fields = dict(fields, settings=merged)

        try:
            subject = self.subjects.update(subject_id, fields)
            self._commit(f"update subject {subject_id}")
        except Exception:
            self.db.rollback()
            raise
        return subject

    def end_session(self, subject_id: str) -> Subject:
        """Close the session, fix its duration and rescore from the stored counters."""
        subject = self.subjects.require(subject_id)
        end_time = datetime.utcnow()
        duration = max(int((end_time - subject.start_time).total_seconds()), 0)

        try:
            subject = self.subjects.compare_and_update_counters(
                subject_id,
                extra_fields={
                    "end_time": end_time,
                    "status": SubjectStatus.COMPLETED.value,
                    "total_duration_seconds": duration,
                },
            )
            self.events.append(Event(
                subject_id=subject_id,
                event_type=EventType.INTERVIEW_ENDED.value,
                timestamp=end_time,
                severity=Severity.LOW.value,
            ))
            self._commit(f"end session for {subject_id}")
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Session ended for {subject_id}: {duration}s, score={subject.integrity_score}"
        )
        return subject

    # ──────────────────────────────────────────────────────
    # Events
    # ──────────────────────────────────────────────────────

    def record_event(
        self,
        subject_id: Optional[str],
        event_type: Optional[str],
        confidence: Optional[float] = None,
        bounding_box=None,
        severity: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> Event:
        if not subject_id or not event_type:
            raise ValidationError("candidate_id and event_type are required")
        parsed = parse_event_type(event_type)
        if parsed is None:
            raise ValidationError(f"Unknown event_type: {event_type}")
        if confidence is not None and not 0.0 <= confidence <= 1.0:
            raise ValidationError("confidence must be between 0 and 1")
        if severity is None:
            severity = Severity.MEDIUM.value
        elif severity not in {s.value for s in Severity}:
            raise ValidationError(f"Unknown severity: {severity}")
        box = _validate_bounding_box(bounding_box)

        self.subjects.require(subject_id)

        event = Event(
            subject_id=subject_id,
            event_type=parsed.value,
            timestamp=to_naive_utc(timestamp) or datetime.utcnow(),
            confidence=confidence,
            bounding_box=box,
            severity=severity,
            extra_data=metadata or {},
        )
        focus_lost_delta, suspicious_delta = counter_deltas(parsed)
        try:
            self.events.append(event)
            if focus_lost_delta or suspicious_delta:
                self.subjects.compare_and_update_counters(
                    subject_id, focus_lost_delta, suspicious_delta
                )
            self._commit(f"record {parsed.value} for {subject_id}")
        except Exception:
            self.db.rollback()
            raise

        logger.debug(f"Recorded {parsed.value} for {subject_id}")
        return event

    def list_events(self, subject_id: str, event_type: Optional[str] = None,
                    start: Optional[datetime] = None, end: Optional[datetime] = None,
                    limit: int = 100) -> List[Event]:
        start, end = _validate_window(start, end)
        if event_type is not None and parse_event_type(event_type) is None:
            raise ValidationError(f"Unknown event_type: {event_type}")
        self.subjects.require(subject_id)
        return self.events.list_for_subject(subject_id, event_type, start, end, limit)

    def event_type_summary(self, subject_id: str, start: Optional[datetime] = None,
                           end: Optional[datetime] = None) -> List[Dict[str, Any]]:
        start, end = _validate_window(start, end)
        self.subjects.require(subject_id)
        return self.events.type_summary(subject_id, start, end)

    # ──────────────────────────────────────────────────────
    # Reports
    # ──────────────────────────────────────────────────────

    def get_report(self, subject_id: str, start: Optional[datetime] = None,
                   end: Optional[datetime] = None) -> StatisticsReport:
        start, end = _validate_window(start, end)
        subject = self.subjects.require(subject_id)
        return aggregate(subject, self.events.query_by_subject(subject_id, start, end))

    def build_full_report(self, subject_id: str, start: Optional[datetime] = None,
                          end: Optional[datetime] = None) -> Dict[str, Any]:
        """Candidate details, statistics and the event list, as served by the report API"""
        start, end = _validate_window(start, end)
        subject = self.subjects.require(subject_id)
        events = self.events.query_by_subject(subject_id, start, end)
        stats = aggregate(subject, events)

        now = datetime.utcnow()
        return {
            "candidate": {
                "candidate_id": subject.subject_id,
                "name": subject.name,
                "email": subject.email,
                "start_time": isoformat(subject.start_time),
                "end_time": isoformat(subject.end_time or now),
                "total_duration_seconds": subject.elapsed_seconds(now),
                "status": subject.status,
            },
            "statistics": stats.to_dict(),
            "events": [e.to_dict() for e in events],
            "generated_at": now.isoformat(),
        }

    # ──────────────────────────────────────────────────────
    # Recordings
    # ──────────────────────────────────────────────────────

    def attach_recording(self, subject_id: Optional[str], source: BinaryIO,
                         content_type: Optional[str]) -> StoredMedia:
        if not subject_id:
            raise ValidationError("Candidate ID is required")
        previous = self.subjects.require(subject_id).media_path

        stored = self.media.save(subject_id, source, content_type)
        try:
            self.subjects.update(subject_id, {"media_path": str(stored.path)})
            self._commit(f"attach recording for {subject_id}")
        except Exception:
            self.db.rollback()
            self.media.discard(stored.path)
            raise

        if previous and previous != str(stored.path):
            self.media.discard(previous)
        return stored

    def stream_media(self, subject_id: str, range_header: Optional[str] = None,
                     chunk_size: Optional[int] = None) -> range_streaming.StreamResult:
        subject = self.subjects.get(subject_id)
        if subject is None or not subject.media_path:
            raise NotFound("Video recording not found")
        handle = self.media.open(subject.media_path)
        return range_streaming.serve(handle, range_header, chunk_size)


# ── Request-scoped accessor ──────────────────────────────

def get_monitoring_service(
    db: Session = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
) -> MonitoringService:
    return MonitoringService(db, media_store)
