"""
Assignment Export Service

Exports a meet's event assignments as a CSV sheet (Google Sheets compatible)
for printing or sharing with the team.

The export only ever receives rows the requester may already read: coaching
staff get the full meet, athletes get their own assignments.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.policy import is_staff
from services.assignments import list_assignments_for_meet
from services.meets import get_meet

logger = logging.getLogger(__name__)

PLACEHOLDER = "—"


@dataclass
class ExportResult:
    """Result of an assignment export."""
    filename: str
    content: str
    content_type: str
    row_count: int


def format_meet_label(name: str, meet_date: Optional[date]) -> str:
    """'County Invitational - 04/12/2025'; just the name when undated."""
    if not meet_date:
        return name
    return f"{name} - {meet_date.strftime('%m/%d/%Y')}"


def safe_filename(name: str) -> str:
    """Replace characters that are invalid in filenames and collapse whitespace."""
    cleaned = re.sub(r'[\\/:*?"<>|]+', "-", name)
    return re.sub(r"\s+", " ", cleaned).strip()


def export_assignments_to_csv(db: Session, actor_id: UUID, meet_id: UUID) -> ExportResult:
    meet = get_meet(db, meet_id)
    label = format_meet_label(meet.name, meet.meet_date)
    views = list_assignments_for_meet(db, actor_id, meet_id)

    rows = sorted(
        (
            (v.event_name or PLACEHOLDER, v.athlete_name or PLACEHOLDER, v.status or "")
            for v in views
        ),
        key=lambda r: (r[0].lower(), r[1].lower()),
    )

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([f"# Assignments: {label}"])
    writer.writerow([f"# Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}"])
    writer.writerow([f"# View: {'Coach' if is_staff(db, actor_id) else 'Athlete'}"])
    writer.writerow([])
    writer.writerow(["Meet", "Event", "Athlete", "Status"])
    for event_name, athlete_name, status in rows:
        writer.writerow([label, event_name, athlete_name, status])

    content = output.getvalue()
    output.close()

    logger.info(f"Exported {len(rows)} assignments for meet {meet_id}")
    return ExportResult(
        filename=safe_filename(f"Assignments - {label}.csv"),
        content=content,
        content_type="text/csv; charset=utf-8",
        row_count=len(rows),
    )
