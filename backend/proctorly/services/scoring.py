"""
Proctorly Integrity Scoring
Converts a subject's violation counters into a bounded integrity score
and classifies the score into a risk level.
"""

from proctorly.models.event_types import RiskLevel

BASE_SCORE = 100
FOCUS_LOST_PENALTY = 2
SUSPICIOUS_EVENT_PENALTY = 5

# Inclusive lower bounds, highest first
RISK_LEVEL_THRESHOLDS = (
    (90, RiskLevel.LOW),
    (70, RiskLevel.MEDIUM),
    (50, RiskLevel.HIGH),
)


def score(focus_lost_count: int, suspicious_event_count: int) -> int:
    """
    Integrity score for the given counters, in [0, 100].

    Counters are non-negative by construction; a negative value means a
    caller bug and raises ValueError.
    """
    if focus_lost_count < 0 or suspicious_event_count < 0:
        raise ValueError(
            f"counters must be non-negative (focus_lost={focus_lost_count}, "
            f"suspicious={suspicious_event_count})"
        )
    raw = (BASE_SCORE
           - FOCUS_LOST_PENALTY * focus_lost_count
           - SUSPICIOUS_EVENT_PENALTY * suspicious_event_count)
    return max(raw, 0)


def risk_level(integrity_score: int) -> RiskLevel:
    for threshold, level in RISK_LEVEL_THRESHOLDS:
        if integrity_score >= threshold:
            return level
    return RiskLevel.CRITICAL
