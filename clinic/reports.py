"""Practice summary reporting.

Builds headline figures for the practice from the registry and renders them
as a one-page PDF:

* Number of providers, patients and scheduled appointments.
* Appointments still ahead of the current time.
* Appointment load per provider specialty.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from .records import Specialty
from .registry import ClinicRegistry

LOGGER = logging.getLogger(__name__)


@dataclass
class PracticeSummary:
    """Container for computed practice metrics."""

    total_providers: int
    total_patients: int
    total_appointments: int
    upcoming_appointments: int
    subscribers: int
    appointments_by_specialty: Dict[str, int] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_providers": self.total_providers,
            "total_patients": self.total_patients,
            "total_appointments": self.total_appointments,
            "upcoming_appointments": self.upcoming_appointments,
            "subscribers": self.subscribers,
            "appointments_by_specialty": dict(self.appointments_by_specialty),
            "generated_at": self.generated_at.isoformat(),
        }


async def build_summary(
    registry: ClinicRegistry, now: Optional[datetime] = None
) -> PracticeSummary:
    now = now or registry.now()
    providers = await registry.list_providers()
    patients = await registry.list_patients()
    appointments = await registry.list_appointments()

    specialty_by_provider = {provider.id: provider.specialty for provider in providers}
    counts: Counter = Counter()
    for appointment in appointments:
        specialty = specialty_by_provider.get(appointment.provider_id)
        # Appointments left behind by deleted providers are not attributed.
        if specialty is not None:
            counts[Specialty(specialty).value] += 1

    summary = PracticeSummary(
        total_providers=len(providers),
        total_patients=len(patients),
        total_appointments=len(appointments),
        upcoming_appointments=sum(1 for appointment in appointments if appointment.start > now),
        subscribers=sum(1 for patient in patients if patient.subscriber),
        appointments_by_specialty=dict(sorted(counts.items())),
        generated_at=now,
    )
    LOGGER.info(
        "Computed summary - providers: %d, patients: %d, appointments: %d (%d upcoming)",
        summary.total_providers,
        summary.total_patients,
        summary.total_appointments,
        summary.upcoming_appointments,
    )
    return summary


def _draw_header(pdf: canvas.Canvas, title: str, generated_at: datetime) -> None:
    pdf.setFont("Helvetica-Bold", 20)
    pdf.drawString(1 * inch, 10.5 * inch, title)
    pdf.setFont("Helvetica", 10)
    pdf.drawString(
        1 * inch,
        10.1 * inch,
        f"Generated on: {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z')}",
    )


def _draw_metrics(pdf: canvas.Canvas, summary: PracticeSummary) -> None:
    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawString(1 * inch, 9.5 * inch, "Key Figures")

    pdf.setFont("Helvetica", 11)
    lines = (
        f"Providers: {summary.total_providers}",
        f"Patients: {summary.total_patients} ({summary.subscribers} subscribers)",
        f"Scheduled appointments: {summary.total_appointments}",
        f"Upcoming appointments: {summary.upcoming_appointments}",
    )
    y = 9.1
    for line in lines:
        pdf.drawString(1.2 * inch, y * inch, line)
        y -= 0.3

    y -= 0.3
    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawString(1 * inch, y * inch, "Appointments by Specialty")
    pdf.setFont("Helvetica", 11)
    y -= 0.4
    if not summary.appointments_by_specialty:
        pdf.drawString(1.2 * inch, y * inch, "Not enough data.")
        return
    for specialty, count in summary.appointments_by_specialty.items():
        pdf.drawString(1.2 * inch, y * inch, f"{specialty}: {count}")
        y -= 0.3


def create_summary_report(summary: PracticeSummary, report_path: Path) -> Path:
    report_path = Path(report_path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    pdf = canvas.Canvas(str(report_path), pagesize=letter)
    _draw_header(pdf, "Practice Summary", summary.generated_at)
    _draw_metrics(pdf, summary)
    pdf.showPage()
    pdf.save()
    LOGGER.info("Practice summary report created at %s", report_path)
    return report_path


def default_report_path(report_dir: Path, generated_at: datetime) -> Path:
    iso_week = generated_at.isocalendar()
    return Path(report_dir) / f"practice_summary_{iso_week[0]}-W{iso_week[1]:02d}.pdf"
