"""
Logs Router
Event ingestion and per-candidate event queries.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from proctorly.models.schemas import EventCreate, EventResponse, EventTypeSummary
from proctorly.services.monitoring_service import MonitoringService, get_monitoring_service

router = APIRouter(prefix="/api/logs", tags=["Logs"])


@router.post("", response_model=EventResponse, status_code=201)
def create_log(
    data: EventCreate,
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Record a classified event and rescore the candidate"""
    event = service.record_event(
        data.candidate_id,
        data.event_type,
        confidence=data.confidence,
        bounding_box=data.bounding_box,
        severity=data.severity,
        metadata=data.metadata,
        timestamp=data.timestamp,
    )
    return EventResponse.from_event(event)


@router.get("/stats/{candidate_id}", response_model=List[EventTypeSummary])
def get_log_stats(
    candidate_id: str,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Per event type counts, mean confidence and last occurrence"""
    rows = service.event_type_summary(candidate_id, start_time, end_time)
    return [EventTypeSummary(**row) for row in rows]


@router.get("/{candidate_id}", response_model=List[EventResponse])
def get_logs(
    candidate_id: str,
    event_type: Optional[str] = None,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Events for a candidate, newest first"""
    events = service.list_events(candidate_id, event_type, start_time, end_time, limit)
    return [EventResponse.from_event(e) for e in events]
