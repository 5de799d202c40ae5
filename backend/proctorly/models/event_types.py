"""
Event vocabulary and classification.

``SUSPICIOUS_EVENT_TYPES`` is the one place that decides which detections
count against a subject; both the scorer and the aggregator read it.
"""

import enum
from typing import Optional


class EventType(str, enum.Enum):
    """Closed vocabulary of classified monitoring events"""
    # Session lifecycle
    INTERVIEW_STARTED = "interview_started"
    INTERVIEW_ENDED = "interview_ended"
    NO_FACE_DETECTED = "no_face_detected"

    # Focus
    FOCUS_LOST = "focus_lost"
    FOCUS_REGAINED = "focus_regained"

    # Detections
    PHONE_DETECTED = "phone_detected"
    BOOK_DETECTED = "book_detected"
    DEVICE_DETECTED = "device_detected"
    MULTIPLE_FACES_DETECTED = "multiple_faces_detected"
    EYE_CLOSURE_DETECTED = "eye_closure_detected"
    AUDIO_NOISE_DETECTED = "audio_noise_detected"


class EventCategory(str, enum.Enum):
    NEUTRAL = "neutral"
    FOCUS = "focus"
    SUSPICIOUS = "suspicious"


class Severity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SubjectStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    TERMINATED = "terminated"


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


FOCUS_EVENT_TYPES = frozenset({
    EventType.FOCUS_LOST,
    EventType.FOCUS_REGAINED,
})

SUSPICIOUS_EVENT_TYPES = frozenset({
    EventType.PHONE_DETECTED,
    EventType.BOOK_DETECTED,
    EventType.DEVICE_DETECTED,
    EventType.MULTIPLE_FACES_DETECTED,
    EventType.EYE_CLOSURE_DETECTED,
    EventType.AUDIO_NOISE_DETECTED,
})


def parse_event_type(value) -> Optional[EventType]:
    """Return the EventType for a raw value, or None if it is not in the vocabulary."""
    if isinstance(value, EventType):
        return value
    try:
        return EventType(value)
    except ValueError:
        return None


def classify(event_type) -> EventCategory:
    event_type = EventType(event_type)
    if event_type in SUSPICIOUS_EVENT_TYPES:
        return EventCategory.SUSPICIOUS
    if event_type in FOCUS_EVENT_TYPES:
        return EventCategory.FOCUS
    return EventCategory.NEUTRAL


def counter_deltas(event_type) -> tuple:
    """(focus_lost_delta, suspicious_delta) contributed by one event."""
    event_type = EventType(event_type)
    category = classify(event_type)
    if category is EventCategory.SUSPICIOUS:
        return (0, 1)
    if category is EventCategory.FOCUS and event_type is EventType.FOCUS_LOST:
        return (1, 0)
    return (0, 0)


def is_focus_lost(event_type) -> bool:
    parsed = parse_event_type(event_type)
    return parsed is not None and counter_deltas(parsed)[0] == 1


def is_suspicious(event_type) -> bool:
    parsed = parse_event_type(event_type)
    return parsed is not None and counter_deltas(parsed)[1] == 1
