"""
Proctorly Subject Store
SQLAlchemy-backed persistence for Subject records.

Counter fields are never written through the ORM object: every change goes
through ``compare_and_update_counters``, which re-derives the integrity
score and only commits against the counters it read.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from proctorly.core.config import settings
from proctorly.core.database import store_errors
from proctorly.core.exceptions import Conflict, NotFound, StoreFailure
from proctorly.models.subject import Subject
from proctorly.services.scoring import score

logger = logging.getLogger("proctorly.store.subjects")

COUNTER_FIELDS = frozenset({"focus_lost_count", "suspicious_event_count", "integrity_score"})


class SubjectStore:
    """Subject persistence bound to one database session; the caller commits."""

    def __init__(self, db: Session, max_retries: Optional[int] = None):
        self.db = db
        self.max_retries = max_retries or settings.COUNTER_UPDATE_MAX_RETRIES

    def get(self, subject_id: str) -> Optional[Subject]:
        with store_errors(self.db, f"load subject {subject_id}"):
            return self.db.query(Subject).filter(Subject.subject_id == subject_id).first()

    def require(self, subject_id: str) -> Subject:
        subject = self.get(subject_id)
        if subject is None:
            raise NotFound("Candidate not found")
        return subject

    def create(self, subject: Subject) -> Subject:
        subject.focus_lost_count = 0
        subject.suspicious_event_count = 0
        subject.integrity_score = score(0, 0)
        with store_errors(self.db, f"create subject {subject.subject_id}"):
            try:
                self.db.add(subject)
                self.db.flush()
            except IntegrityError as e:
                self.db.rollback()
                raise Conflict("Candidate ID already exists") from e
        return subject

    def update(self, subject_id: str, fields: Dict[str, Any]) -> Subject:
        """Apply descriptive field changes; counters and score are refused."""
        forbidden = COUNTER_FIELDS.intersection(fields)
        if forbidden:
            raise ValueError(f"counter fields cannot be set directly: {sorted(forbidden)}")

        subject = self.require(subject_id)
        with store_errors(self.db, f"update subject {subject_id}"):
            for key, value in fields.items():
                setattr(subject, key, value)
            subject.updated_at = datetime.utcnow()
            self.db.flush()
        return subject

    def compare_and_update_counters(
        self,
        subject_id: str,
        focus_lost_delta: int = 0,
        suspicious_delta: int = 0,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> Subject:
        """
        Atomically add to the subject's counters and rescore it.

        Reads the current counters, then issues an UPDATE guarded on those
        exact values. If a concurrent writer got there first the guard
        matches no row and the read is repeated. ``extra_fields`` are written
        in the same statement (used when ending a session).
        """
        if focus_lost_delta < 0 or suspicious_delta < 0:
            raise ValueError("counter deltas must be non-negative")

        for attempt in range(1, self.max_retries + 1):
            with store_errors(self.db, f"update counters for {subject_id}"):
                current = self.db.execute(
                    select(Subject.focus_lost_count, Subject.suspicious_event_count)
                    .where(Subject.subject_id == subject_id)
                ).first()
                if current is None:
                    raise NotFound("Candidate not found")

                focus_lost, suspicious = current
                new_focus_lost = focus_lost + focus_lost_delta
                new_suspicious = suspicious + suspicious_delta
                values = dict(extra_fields or {})
                values.update(
                    focus_lost_count=new_focus_lost,
                    suspicious_event_count=new_suspicious,
                    integrity_score=score(new_focus_lost, new_suspicious),
                    updated_at=datetime.utcnow(),
                )

                result = self.db.execute(
                    update(Subject)
                    .where(
                        Subject.subject_id == subject_id,
                        Subject.focus_lost_count == focus_lost,
                        Subject.suspicious_event_count == suspicious,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )

            if result.rowcount == 1:
                subject = self.require(subject_id)
                self.db.refresh(subject)
                return subject

            logger.debug(f"Counter update for {subject_id} lost a race (attempt {attempt})")

        self.db.rollback()
        raise StoreFailure(f"Could not update counters for {subject_id} after {self.max_retries} attempts")

    def list(self, status: Optional[str] = None, limit: int = 50, skip: int = 0) -> List[Subject]:
        with store_errors(self.db, "list subjects"):
            query = self.db.query(Subject)
            if status:
                query = query.filter(Subject.status == status)
            return (
                query.order_by(Subject.created_at.desc(), Subject.id.desc())
                .offset(skip)
                .limit(limit)
                .all()
            )
