"""
Proctorly Statistics Aggregation
Folds a subject's event history into a StatisticsReport: per-type
breakdown, violation counts, elapsed-time buckets and a risk level.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from proctorly.models.event_types import RiskLevel, is_focus_lost, is_suspicious
from proctorly.services.scoring import risk_level

logger = logging.getLogger("proctorly.stats")


# Upper bounds (inclusive, seconds since session start); anything later is "beyond"
TIME_BUCKETS: Tuple[Tuple[str, float], ...] = (
    ("first_hour", 3600),
    ("second_hour", 7200),
    ("third_hour", 10800),
)
OVERFLOW_BUCKET = "beyond"
BUCKET_NAMES = tuple(name for name, _ in TIME_BUCKETS) + (OVERFLOW_BUCKET,)


@dataclass
class BucketStats:
    events: int = 0
    focus_lost: int = 0
    suspicious: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "events": self.events,
            "focus_lost": self.focus_lost,
            "suspicious": self.suspicious,
        }


@dataclass
class StatisticsReport:
    """Derived statistics for one subject; recomputed per request, never stored"""
    total_events: int = 0
    focus_lost_count: int = 0
    suspicious_event_count: int = 0
    event_type_breakdown: Dict[str, int] = field(default_factory=dict)
    time_bucket_analysis: Dict[str, BucketStats] = field(
        default_factory=lambda: {name: BucketStats() for name in BUCKET_NAMES}
    )
    integrity_score: int = 100
    risk_level: RiskLevel = RiskLevel.LOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_events": self.total_events,
            "focus_lost_count": self.focus_lost_count,
            "suspicious_event_count": self.suspicious_event_count,
            "event_type_breakdown": dict(self.event_type_breakdown),
            "time_bucket_analysis": {
                name: bucket.to_dict() for name, bucket in self.time_bucket_analysis.items()
            },
            "integrity_score": self.integrity_score,
            "risk_level": self.risk_level.value,
        }


def bucket_for(elapsed_seconds: float) -> str:
    for name, upper in TIME_BUCKETS:
        if elapsed_seconds <= upper:
            return name
    return OVERFLOW_BUCKET


def _ordered(events: Iterable) -> List:
    return sorted(events, key=lambda e: (e.timestamp, getattr(e, "id", None) or 0))


def aggregate(subject, events: Iterable) -> StatisticsReport:
    """
    Build the StatisticsReport for ``subject`` from ``events``.

    Read-only: neither the subject nor the events are modified, so the same
    input always yields an equal report. Events before ``start_time`` land in
    the first bucket; an active session is bucketed the same way as an
    ended one.
    """
    report = StatisticsReport()

    for event in _ordered(events):
        event_type = event.event_type
        focus_lost = is_focus_lost(event_type)
        suspicious = is_suspicious(event_type)

        report.total_events += 1
        report.event_type_breakdown[event_type] = report.event_type_breakdown.get(event_type, 0) + 1
        if focus_lost:
            report.focus_lost_count += 1
        if suspicious:
            report.suspicious_event_count += 1

        elapsed = (event.timestamp - subject.start_time).total_seconds()
        bucket = report.time_bucket_analysis[bucket_for(elapsed)]
        bucket.events += 1
        if focus_lost:
            bucket.focus_lost += 1
        if suspicious:
            bucket.suspicious += 1

    report.integrity_score = subject.integrity_score
    report.risk_level = risk_level(subject.integrity_score)

    logger.debug(
        "Aggregated %d events for %s (score=%d, risk=%s)",
        report.total_events, subject.subject_id, report.integrity_score, report.risk_level.value,
    )
    return report
