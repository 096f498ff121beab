"""
Tests for the row authorization policy (core/policy.py).

Roles come from the requester's own profile row; every collection has its own
read/write predicate and collection reads are scoped rather than rejected.
"""
from uuid import uuid4

import pytest

from core.exceptions import ForbiddenError
from core.policy import (
    Collection,
    Op,
    allow,
    is_staff,
    require,
    resolve_role,
    scope_athlete_rows,
    scope_profiles,
    scope_thread_rows,
)
from models import (
    Assignment,
    EmergencyContact,
    Message,
    MessageThread,
    MessageThreadParticipant,
    Profile,
)


def _thread(db, creator, members):
    thread = MessageThread(type="group", created_by=creator.user_id, subject="Travel")
    db.add(thread)
    db.flush()
    for member in [creator] + members:
        db.add(MessageThreadParticipant(thread_id=thread.id, user_id=member.user_id, added_by=creator.user_id))
    db.commit()
    return thread


class TestRoleResolution:
    def test_role_read_from_profile(self, db_session, coach, athlete):
        assert resolve_role(db_session, coach.user_id) == "coach"
        assert resolve_role(db_session, athlete.user_id) == "athlete"

    def test_missing_profile_is_athlete(self, db_session):
        assert resolve_role(db_session, uuid4()) == "athlete"
        assert resolve_role(db_session, None) == "athlete"

    def test_staff_roles(self, db_session, coach, assistant_coach, athlete):
        assert is_staff(db_session, coach.user_id)
        assert is_staff(db_session, assistant_coach.user_id)
        assert not is_staff(db_session, athlete.user_id)

    def test_role_change_takes_effect_immediately(self, db_session, athlete):
        athlete.role = "coach"
        db_session.commit()
        assert is_staff(db_session, athlete.user_id)


class TestProfilePolicy:
    def test_self_can_read_and_update(self, db_session, athlete):
        assert allow(db_session, Op.READ, Collection.PROFILE, athlete, athlete.user_id)
        assert allow(db_session, Op.UPDATE, Collection.PROFILE, athlete, athlete.user_id)

    def test_staff_can_read_and_update_anyone(self, db_session, assistant_coach, athlete):
        assert allow(db_session, Op.READ, Collection.PROFILE, athlete, assistant_coach.user_id)
        assert allow(db_session, Op.UPDATE, Collection.PROFILE, athlete, assistant_coach.user_id)

    def test_athlete_cannot_touch_another_profile(self, db_session, athlete, other_athlete):
        assert not allow(db_session, Op.READ, Collection.PROFILE, other_athlete, athlete.user_id)
        assert not allow(db_session, Op.UPDATE, Collection.PROFILE, other_athlete, athlete.user_id)

    def test_nobody_inserts_or_deletes_profiles_directly(self, db_session, coach, athlete):
        assert not allow(db_session, Op.DELETE, Collection.PROFILE, athlete, coach.user_id)
        assert not allow(db_session, Op.INSERT, Collection.PROFILE, athlete, coach.user_id)

    def test_anonymous_denied(self, db_session, athlete):
        assert not allow(db_session, Op.READ, Collection.PROFILE, athlete, None)

    def test_require_raises_forbidden(self, db_session, athlete, other_athlete):
        with pytest.raises(ForbiddenError):
            require(db_session, Op.UPDATE, Collection.PROFILE, other_athlete, athlete.user_id)

    def test_scope_profiles(self, db_session, coach, athlete, other_athlete):
        staff_rows = scope_profiles(db_session.query(Profile), db_session, coach.user_id).all()
        assert len(staff_rows) == 3

        own_rows = scope_profiles(db_session.query(Profile), db_session, athlete.user_id).all()
        assert [p.user_id for p in own_rows] == [athlete.user_id]


class TestMessagingPolicy:
    def test_thread_insert_requires_staff_creator(self, db_session, coach, athlete):
        staff_thread = MessageThread(type="direct", created_by=coach.user_id)
        athlete_thread = MessageThread(type="direct", created_by=athlete.user_id)
        assert allow(db_session, Op.INSERT, Collection.THREAD, staff_thread, coach.user_id)
        assert not allow(db_session, Op.INSERT, Collection.THREAD, athlete_thread, athlete.user_id)
        # Creating on someone else's behalf is refused too.
        assert not allow(db_session, Op.INSERT, Collection.THREAD, athlete_thread, coach.user_id)

    def test_thread_read_only_for_participants(self, db_session, coach, athlete, other_athlete):
        thread = _thread(db_session, coach, [athlete])
        assert allow(db_session, Op.READ, Collection.THREAD, thread, athlete.user_id)
        assert not allow(db_session, Op.READ, Collection.THREAD, thread, other_athlete.user_id)

    def test_participant_insert_only_by_creator_before_first_message(self, db_session, coach, assistant_coach, athlete, other_athlete):
        thread = _thread(db_session, coach, [athlete])

        row = MessageThreadParticipant(thread_id=thread.id, user_id=other_athlete.user_id, added_by=coach.user_id)
        assert allow(db_session, Op.INSERT, Collection.PARTICIPANT, row, coach.user_id)

        # Another staff member did not create the thread.
        row_by_other = MessageThreadParticipant(thread_id=thread.id, user_id=other_athlete.user_id, added_by=assistant_coach.user_id)
        assert not allow(db_session, Op.INSERT, Collection.PARTICIPANT, row_by_other, assistant_coach.user_id)

        # Self-join by an athlete is refused.
        self_join = MessageThreadParticipant(thread_id=thread.id, user_id=other_athlete.user_id, added_by=other_athlete.user_id)
        assert not allow(db_session, Op.INSERT, Collection.PARTICIPANT, self_join, other_athlete.user_id)

        db_session.add(Message(thread_id=thread.id, sender_user_id=coach.user_id, body="Bus at 7"))
        db_session.commit()
        assert not allow(db_session, Op.INSERT, Collection.PARTICIPANT, row, coach.user_id)

    def test_participant_update_only_own_row(self, db_session, coach, athlete):
        thread = _thread(db_session, coach, [athlete])
        own = db_session.get(MessageThreadParticipant, (thread.id, athlete.user_id))
        coach_row = db_session.get(MessageThreadParticipant, (thread.id, coach.user_id))
        assert allow(db_session, Op.UPDATE, Collection.PARTICIPANT, own, athlete.user_id)
        assert not allow(db_session, Op.UPDATE, Collection.PARTICIPANT, coach_row, athlete.user_id)

    def test_message_insert_requires_participant_sender(self, db_session, coach, athlete, other_athlete):
        thread = _thread(db_session, coach, [athlete])
        assert allow(db_session, Op.INSERT, Collection.MESSAGE, Message(thread_id=thread.id, sender_user_id=athlete.user_id, body="ok"), athlete.user_id)
        # Posting as someone else.
        assert not allow(db_session, Op.INSERT, Collection.MESSAGE, Message(thread_id=thread.id, sender_user_id=coach.user_id, body="x"), athlete.user_id)
        # Not a participant.
        assert not allow(db_session, Op.INSERT, Collection.MESSAGE, Message(thread_id=thread.id, sender_user_id=other_athlete.user_id, body="x"), other_athlete.user_id)

    def test_messages_are_immutable(self, db_session, coach, athlete):
        thread = _thread(db_session, coach, [athlete])
        message = Message(thread_id=thread.id, sender_user_id=coach.user_id, body="Bus at 7")
        db_session.add(message)
        db_session.commit()
        assert not allow(db_session, Op.UPDATE, Collection.MESSAGE, message, coach.user_id)
        assert not allow(db_session, Op.DELETE, Collection.MESSAGE, message, coach.user_id)

    def test_scope_thread_rows(self, db_session, coach, athlete, other_athlete):
        thread = _thread(db_session, coach, [athlete])
        db_session.add(Message(thread_id=thread.id, sender_user_id=coach.user_id, body="Bus at 7"))
        db_session.commit()

        visible = scope_thread_rows(db_session.query(Message), Message.thread_id, athlete.user_id).all()
        hidden = scope_thread_rows(db_session.query(Message), Message.thread_id, other_athlete.user_id).all()
        assert len(visible) == 1
        assert hidden == []


class TestAthleteOwnedPolicy:
    def test_team_wide_tables_readable_by_all_written_by_staff(self, db_session, coach, athlete, meet):
        assert allow(db_session, Op.READ, Collection.MEET, meet, athlete.user_id)
        assert not allow(db_session, Op.UPDATE, Collection.MEET, meet, athlete.user_id)
        assert allow(db_session, Op.UPDATE, Collection.MEET, meet, coach.user_id)

    def test_owner_or_staff_reads(self, db_session, coach, athlete, other_athlete):
        contact = EmergencyContact(athlete_user_id=athlete.user_id, contact_name="Pat", phone="555-0101")
        assert allow(db_session, Op.READ, Collection.EMERGENCY_CONTACT, contact, athlete.user_id)
        assert allow(db_session, Op.READ, Collection.EMERGENCY_CONTACT, contact, coach.user_id)
        assert not allow(db_session, Op.READ, Collection.EMERGENCY_CONTACT, contact, other_athlete.user_id)

    def test_only_staff_write(self, db_session, coach, athlete):
        contact = EmergencyContact(athlete_user_id=athlete.user_id, contact_name="Pat", phone="555-0101")
        assert not allow(db_session, Op.INSERT, Collection.EMERGENCY_CONTACT, contact, athlete.user_id)
        assert allow(db_session, Op.INSERT, Collection.EMERGENCY_CONTACT, contact, coach.user_id)

    def test_scope_athlete_rows(self, db_session, coach, athlete, other_athlete):
        query = db_session.query(Profile)
        assert len(scope_athlete_rows(query, Profile.user_id, db_session, coach.user_id).all()) == 3
        own = scope_athlete_rows(query, Profile.user_id, db_session, athlete.user_id).all()
        assert [p.user_id for p in own] == [athlete.user_id]

    def test_assignment_read(self, db_session, athlete, other_athlete):
        row = Assignment(athlete_id=athlete.user_id, status="assigned")
        assert allow(db_session, Op.READ, Collection.ASSIGNMENT, row, athlete.user_id)
        assert not allow(db_session, Op.READ, Collection.ASSIGNMENT, row, other_athlete.user_id)
