"""
Reports Router
JSON and PDF integrity reports for a candidate.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from proctorly.core.exceptions import ValidationError
from proctorly.services.monitoring_service import MonitoringService, get_monitoring_service
from proctorly.services.report_renderer import render_pdf

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.get("/{candidate_id}")
def get_report(
    candidate_id: str,
    format: str = Query(default="json"),
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Generate the proctoring report for a candidate"""
    if format not in ("json", "pdf"):
        raise ValidationError(f"Unsupported report format: {format}")

    report = service.build_full_report(candidate_id, start_time, end_time)
    if format == "json":
        return report

    return Response(
        content=render_pdf(report),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="proctoring-report-{candidate_id}.pdf"'
        },
    )
