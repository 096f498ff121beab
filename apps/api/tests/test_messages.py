"""
Tests for the messaging inbox

Thread creation by staff, participant-only reads and posts, unread counts
and the read marker.
"""
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from main import app
from models import MessageThreadParticipant
from services import messaging

client = TestClient(app)


def _open(db, coach, recipients, subject="Bus times", first_message=None):
    thread = messaging.create_thread(
        db, coach.user_id,
        participant_ids=[r.user_id for r in recipients],
        subject=subject,
        first_message=first_message,
    )
    db.commit()
    return thread


class TestCreateThread:
    def test_direct_thread(self, db_session, coach, athlete):
        thread = _open(db_session, coach, [athlete])
        assert thread.type == "direct"
        assert thread.created_by == coach.user_id

        members = {
            p.user_id
            for p in db_session.query(MessageThreadParticipant).filter(MessageThreadParticipant.thread_id == thread.id)
        }
        assert members == {coach.user_id, athlete.user_id}

    def test_group_thread_and_dedup(self, db_session, coach, athlete, other_athlete):
        thread = messaging.create_thread(
            db_session, coach.user_id,
            participant_ids=[athlete.user_id, other_athlete.user_id, athlete.user_id, coach.user_id],
        )
        db_session.commit()
        assert thread.type == "group"
        count = db_session.query(MessageThreadParticipant).filter(MessageThreadParticipant.thread_id == thread.id).count()
        assert count == 3

    def test_subject_default_and_truncation(self, db_session, coach, athlete):
        assert _open(db_session, coach, [athlete], subject="   ").subject == messaging.DEFAULT_SUBJECT
        long_subject = "x" * 300
        assert len(_open(db_session, coach, [athlete], subject=long_subject).subject) == messaging.SUBJECT_MAX_LENGTH

    def test_first_message_posted(self, db_session, coach, athlete):
        thread = _open(db_session, coach, [athlete], first_message="Bus leaves at 7:15")
        messages = messaging.list_messages(db_session, athlete.user_id, thread.id)
        assert [m.body for m in messages] == ["Bus leaves at 7:15"]
        assert messages[0].sender_name == "Casey Coach"

    def test_athlete_cannot_start_thread(self, db_session, athlete, coach):
        with pytest.raises(ForbiddenError):
            messaging.create_thread(db_session, athlete.user_id, participant_ids=[coach.user_id])

    def test_requires_recipient(self, db_session, coach):
        with pytest.raises(ValidationError) as exc:
            messaging.create_thread(db_session, coach.user_id, participant_ids=[coach.user_id])
        assert exc.value.field == "participant_ids"

    def test_unknown_recipient(self, db_session, coach):
        with pytest.raises(ValidationError):
            messaging.create_thread(db_session, coach.user_id, participant_ids=[uuid4()])


class TestMessages:
    def test_non_participant_sees_nothing(self, db_session, coach, athlete, other_athlete):
        thread = _open(db_session, coach, [athlete], first_message="Private note")
        assert messaging.list_messages(db_session, other_athlete.user_id, thread.id) == []
        assert messaging.list_thread_summaries(db_session, other_athlete.user_id) == []

    def test_non_participant_cannot_post(self, db_session, coach, athlete, other_athlete):
        thread = _open(db_session, coach, [athlete])
        with pytest.raises(ForbiddenError):
            messaging.send_message(db_session, other_athlete.user_id, thread.id, "let me in")

    def test_participant_athlete_can_reply(self, db_session, coach, athlete):
        thread = _open(db_session, coach, [athlete], first_message="Ready?")
        messaging.send_message(db_session, athlete.user_id, thread.id, "  Yes coach  ")
        db_session.commit()
        bodies = [m.body for m in messaging.list_messages(db_session, coach.user_id, thread.id)]
        assert bodies == ["Ready?", "Yes coach"]

    def test_empty_body_rejected(self, db_session, coach, athlete):
        thread = _open(db_session, coach, [athlete])
        with pytest.raises(ValidationError):
            messaging.send_message(db_session, coach.user_id, thread.id, "   ")


class TestUnreadAndSummaries:
    def test_unread_counts_and_mark_read(self, db_session, coach, athlete):
        thread = _open(db_session, coach, [athlete], first_message="One")
        messaging.send_message(db_session, coach.user_id, thread.id, "Two")
        db_session.commit()

        assert messaging.total_unread(db_session, athlete.user_id) == 2
        # Own messages never count as unread.
        assert messaging.total_unread(db_session, coach.user_id) == 0

        messaging.mark_thread_read(db_session, athlete.user_id, thread.id)
        db_session.commit()
        assert messaging.total_unread(db_session, athlete.user_id) == 0

    def test_mark_read_requires_participation(self, db_session, coach, athlete, other_athlete):
        thread = _open(db_session, coach, [athlete])
        with pytest.raises(NotFoundError):
            messaging.mark_thread_read(db_session, other_athlete.user_id, thread.id)

    def test_summary_contents(self, db_session, coach, athlete, other_athlete):
        thread = _open(db_session, coach, [athlete, other_athlete], subject="Relay", first_message="Practice handoffs")

        summaries = messaging.list_thread_summaries(db_session, athlete.user_id)
        assert len(summaries) == 1
        summary = summaries[0]
        assert summary.id == thread.id
        assert summary.subject == "Relay"
        assert summary.type == "group"
        assert {p.full_name for p in summary.participants} == {"Casey Coach", "Jordan Runner", "Riley Sprinter"}
        assert summary.last_message.body == "Practice handoffs"
        assert summary.unread_count == 1

    def test_most_recent_activity_first(self, db_session, coach, athlete):
        older = _open(db_session, coach, [athlete], subject="Older", first_message="first")
        newer = _open(db_session, coach, [athlete], subject="Newer")
        assert [s.id for s in messaging.list_thread_summaries(db_session, athlete.user_id)] == [newer.id, older.id]

        messaging.send_message(db_session, coach.user_id, older.id, "bump")
        db_session.commit()
        assert [s.id for s in messaging.list_thread_summaries(db_session, athlete.user_id)] == [older.id, newer.id]


class TestMessagesAPI:
    def test_thread_flow(self, coach, athlete, other_athlete, auth_headers):
        response = client.post(
            "/v1/messages/threads",
            json={"participant_ids": [str(athlete.user_id)], "subject": "Spikes", "first_message": "Bring spikes"},
            headers=auth_headers(coach),
        )
        assert response.status_code == 201
        thread_id = response.json()["id"]
        assert response.json()["type"] == "direct"

        inbox = client.get("/v1/messages/threads", headers=auth_headers(athlete)).json()
        assert inbox[0]["unread_count"] == 1
        assert inbox[0]["last_message"]["body"] == "Bring spikes"

        reply = client.post(
            f"/v1/messages/threads/{thread_id}/messages", json={"body": "Will do"}, headers=auth_headers(athlete)
        )
        assert reply.status_code == 201

        read = client.post(f"/v1/messages/threads/{thread_id}/read", headers=auth_headers(athlete))
        assert read.status_code == 200
        inbox = client.get("/v1/messages/threads", headers=auth_headers(athlete)).json()
        assert inbox[0]["unread_count"] == 0

        outsider = client.get(f"/v1/messages/threads/{thread_id}/messages", headers=auth_headers(other_athlete))
        assert outsider.status_code == 200
        assert outsider.json() == []

        denied = client.post(
            f"/v1/messages/threads/{thread_id}/messages", json={"body": "hi"}, headers=auth_headers(other_athlete)
        )
        assert denied.status_code == 403

    def test_athlete_cannot_open_thread(self, coach, athlete, auth_headers):
        response = client.post(
            "/v1/messages/threads",
            json={"participant_ids": [str(coach.user_id)]},
            headers=auth_headers(athlete),
        )
        assert response.status_code == 403
