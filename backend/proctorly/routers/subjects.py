"""
Candidates Router
Session lifecycle for monitored subjects.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from proctorly.models.schemas import SubjectCreate, SubjectResponse, SubjectUpdate
from proctorly.services.monitoring_service import MonitoringService, get_monitoring_service

router = APIRouter(prefix="/api/candidates", tags=["Candidates"])


@router.post("", response_model=SubjectResponse, status_code=201)
def create_candidate(
    data: SubjectCreate,
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Create a candidate and start its session"""
    subject = service.create_subject(
        data.candidate_id,
        data.name,
        data.email,
        settings=data.settings.model_dump() if data.settings else None,
    )
    return SubjectResponse.model_validate(subject)


@router.get("", response_model=List[SubjectResponse])
def list_candidates(
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    skip: int = Query(default=0, ge=0),
    service: MonitoringService = Depends(get_monitoring_service),
):
    """List candidates, newest first"""
    subjects = service.list_subjects(status=status, limit=limit, skip=skip)
    return [SubjectResponse.model_validate(s) for s in subjects]


@router.get("/{candidate_id}", response_model=SubjectResponse)
def get_candidate(
    candidate_id: str,
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Get candidate details"""
    return SubjectResponse.model_validate(service.get_subject(candidate_id))


@router.put("/{candidate_id}", response_model=SubjectResponse)
def update_candidate(
    candidate_id: str,
    data: SubjectUpdate,
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Update descriptive candidate fields"""
    fields = data.model_dump(exclude_unset=True)
    if fields.get("settings") is None:
        fields.pop("settings", None)
    subject = service.update_subject(candidate_id, fields)
    return SubjectResponse.model_validate(subject)


@router.post("/{candidate_id}/end", response_model=SubjectResponse)
def end_interview(
    candidate_id: str,
    service: MonitoringService = Depends(get_monitoring_service),
):
    """End the interview session and finalise the integrity score"""
    return SubjectResponse.model_validate(service.end_session(candidate_id))
