"""
Tests for the assignment CSV export
"""
import csv
import io
from datetime import date

from fastapi.testclient import TestClient

from main import app
from services.assignment_export import export_assignments_to_csv, format_meet_label, safe_filename
from services.assignments import upsert_assignment

client = TestClient(app)


def _rows(content):
    return list(csv.reader(io.StringIO(content)))


def _assign(db, coach, meet, athlete, event_name, status="assigned"):
    upsert_assignment(
        db, coach.user_id,
        meet_id=meet.id, event_name=event_name, athlete_id=athlete.user_id, status=status,
    )
    db.commit()


class TestHelperFunctions:
    def test_format_meet_label(self):
        assert format_meet_label("County Invitational", date(2025, 4, 12)) == "County Invitational - 04/12/2025"
        assert format_meet_label("Undated", None) == "Undated"

    def test_safe_filename(self):
        assert safe_filename('Assignments - A/B: "Finals"?.csv') == "Assignments - A-B- -Finals-.csv"
        assert safe_filename("Too    many   spaces.csv") == "Too many spaces.csv"


class TestCSVExport:
    def test_staff_sheet(self, db_session, coach, athlete, other_athlete, meet):
        _assign(db_session, coach, meet, other_athlete, "long jump")
        _assign(db_session, coach, meet, athlete, "100m", status="alternate")
        _assign(db_session, coach, meet, other_athlete, "100m")

        result = export_assignments_to_csv(db_session, coach.user_id, meet.id)
        label = format_meet_label(meet.name, meet.meet_date)

        assert result.row_count == 3
        assert result.content_type == "text/csv; charset=utf-8"
        assert result.filename == f"Assignments - {label.replace('/', '-')}.csv"

        rows = _rows(result.content)
        assert rows[0] == [f"# Assignments: {label}"]
        assert rows[1][0].startswith("# Generated: ")
        assert rows[2] == ["# View: Coach"]
        assert rows[3] == []
        assert rows[4] == ["Meet", "Event", "Athlete", "Status"]
        assert rows[5:] == [
            [label, "100m", "Jordan Runner", "alternate"],
            [label, "100m", "Riley Sprinter", "assigned"],
            [label, "long jump", "Riley Sprinter", "assigned"],
        ]

    def test_athlete_sheet_only_own_rows(self, db_session, coach, athlete, other_athlete, meet):
        _assign(db_session, coach, meet, athlete, "200m")
        _assign(db_session, coach, meet, other_athlete, "200m")

        result = export_assignments_to_csv(db_session, athlete.user_id, meet.id)
        rows = _rows(result.content)
        assert rows[2] == ["# View: Athlete"]
        assert [r[2] for r in rows[5:]] == ["Jordan Runner"]

    def test_empty_meet(self, db_session, coach, meet):
        result = export_assignments_to_csv(db_session, coach.user_id, meet.id)
        assert result.row_count == 0
        assert _rows(result.content)[-1] == ["Meet", "Event", "Athlete", "Status"]


class TestExportAPI:
    def test_download(self, db_session, coach, athlete, meet, auth_headers):
        _assign(db_session, coach, meet, athlete, "1600m")

        response = client.get(f"/v1/meets/{meet.id}/assignments/export", headers=auth_headers(coach))
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].startswith('attachment; filename="Assignments - County Invitational')
        assert "1600m" in response.text
