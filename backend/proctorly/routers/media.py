"""
Recordings Router
Archives uploaded session recordings and replays them with byte-range support.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import StreamingResponse

from proctorly.core.exceptions import ValidationError
from proctorly.models.schemas import UploadResponse
from proctorly.services.monitoring_service import MonitoringService, get_monitoring_service

logger = logging.getLogger("proctorly.media.router")

router = APIRouter(prefix="/api/upload", tags=["Recordings"])


@router.post("", response_model=UploadResponse)
def upload_recording(
    video: Optional[UploadFile] = File(default=None),
    candidate_id: Optional[str] = Form(default=None),
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Upload the video recording for a candidate"""
    if video is None or not video.filename:
        raise ValidationError("No video file provided")

    stored = service.attach_recording(candidate_id, video.file, video.content_type)
    logger.info(f"Recording uploaded for {candidate_id}: {video.filename} -> {stored.filename}")
    return UploadResponse(
        file_path=str(stored.path),
        file_name=stored.filename,
        file_size=stored.size,
        candidate_id=candidate_id,
    )


@router.get("/{candidate_id}")
def stream_recording(
    candidate_id: str,
    request: Request,
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Stream the recording; honours the Range header for seeking"""
    result = service.stream_media(candidate_id, request.headers.get("range"))
    return StreamingResponse(
        result.body,
        status_code=result.status_code,
        headers=result.headers,
        media_type=result.media_type,
    )
