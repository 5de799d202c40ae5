"""
Proctorly PDF Report Renderer
Lays out a built report (see MonitoringService.build_full_report) as a
paginated PDF document.
"""

import io
import logging
from datetime import datetime
from typing import Any, Dict

from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from proctorly.utils.timeutils import format_duration

logger = logging.getLogger("proctorly.reports.pdf")

BUCKET_LABELS = {
    "first_hour": "First hour",
    "second_hour": "Second hour",
    "third_hour": "Third hour",
    "beyond": "Beyond third hour",
}


class _PageWriter:
    """Tracks the cursor and starts a new page when the current one fills."""

    def __init__(self, c: canvas.Canvas):
        self.c = c
        self.width, self.height = letter
        self.y = self.height - inch

    def _ensure_room(self, needed: float):
        if self.y - needed < inch:
            self.c.showPage()
            self.y = self.height - inch

    def heading(self, text: str, size: int = 16):
        self._ensure_room(size + 20)
        self.y -= 10
        self.c.setFont("Helvetica-Bold", size)
        self.c.drawString(inch, self.y, text)
        self.y -= size + 8

    def line(self, text: str, size: int = 10):
        self._ensure_room(size + 10)
        self.c.setFont("Helvetica", size)
        self.c.drawString(inch, self.y, text)
        self.y -= size + 8


def render_pdf(report: Dict[str, Any]) -> bytes:
    candidate = report["candidate"]
    stats = report["statistics"]

    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    c.setTitle(f"Proctoring Report - {candidate['candidate_id']}")
    page = _PageWriter(c)

    page.heading("Proctoring Report", size=20)
    page.line(f"Generated: {datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S')} UTC", size=12)

    page.heading("Candidate Information")
    page.line(f"Name: {candidate['name']}")
    page.line(f"Email: {candidate['email']}")
    page.line(f"Interview Duration: {format_duration(candidate['total_duration_seconds'])}")
    page.line(f"Status: {candidate['status']}")
    page.line(f"Integrity Score: {stats['integrity_score']}/100")
    page.line(f"Risk Level: {stats['risk_level'].upper()}")

    page.heading("Statistics")
    page.line(f"Total Events: {stats['total_events']}")
    page.line(f"Focus Lost Count: {stats['focus_lost_count']}")
    page.line(f"Suspicious Events: {stats['suspicious_event_count']}")

    page.heading("Event Type Breakdown", size=14)
    for event_type, count in stats["event_type_breakdown"].items():
        page.line(f"{event_type}: {count}")

    page.heading("Time-based Analysis", size=14)
    for bucket, data in stats["time_bucket_analysis"].items():
        page.line(
            f"{BUCKET_LABELS.get(bucket, bucket)}: {data['events']} events "
            f"({data['focus_lost']} focus lost, {data['suspicious']} suspicious)"
        )

    c.save()
    pdf = buffer.getvalue()
    logger.info(f"Rendered PDF report for {candidate['candidate_id']} ({len(pdf)} bytes)")
    return pdf
