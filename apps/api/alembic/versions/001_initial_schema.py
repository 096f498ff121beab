"""initial schema

Revision ID: 001
Revises:
Create Date: 2025-03-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    # Identity
    op.create_table(
        'auth_user',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('banned_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sign_in_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_auth_user_email', 'auth_user', ['email'], unique=True)

    op.create_table(
        'profile',
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('auth_user.id'), primary_key=True),
        sa.Column('full_name', sa.Text(), nullable=True),
        sa.Column('role', sa.Text(), server_default='athlete', nullable=False),
        sa.Column('gender', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        _created_at(),
        sa.CheckConstraint("role in ('athlete', 'coach', 'assistant_coach')", name='ck_profile_role'),
        sa.CheckConstraint("gender is null or gender in ('male', 'female')", name='ck_profile_gender'),
    )
    op.create_index('ix_profile_role_name', 'profile', ['role', 'full_name'])

    # Meets and events
    op.create_table(
        'meet',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('location', sa.Text(), nullable=True),
        sa.Column('meet_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('bus_time', sa.Time(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_meet_meet_date', 'meet', ['meet_date'])

    op.create_table(
        'event',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False, unique=True),
    )

    op.create_table(
        'meet_event',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('meet_id', sa.Uuid(), sa.ForeignKey('meet.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_name', sa.Text(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('meet_id', 'event_name', name='uq_meet_event_meet_event_name'),
    )
    op.create_index('ix_meet_event_meet_id', 'meet_event', ['meet_id'])

    # Assignments (merge on conflict) and results (reject on conflict)
    op.create_table(
        'assignment',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('meet_event_id', sa.Uuid(), sa.ForeignKey('meet_event.id', ondelete='CASCADE'), nullable=False),
        sa.Column('athlete_id', sa.Uuid(), sa.ForeignKey('profile.user_id'), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('meet_event_id', 'athlete_id', name='uq_assignment_meet_event_athlete'),
        sa.CheckConstraint("status in ('assigned', 'alternate')", name='ck_assignment_status'),
    )
    op.create_index('ix_assignment_athlete_id', 'assignment', ['athlete_id'])

    op.create_table(
        'result',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('meet_event_id', sa.Uuid(), sa.ForeignKey('meet_event.id', ondelete='CASCADE'), nullable=False),
        sa.Column('athlete_id', sa.Uuid(), sa.ForeignKey('profile.user_id'), nullable=False),
        sa.Column('mark', sa.Text(), nullable=False),
        sa.Column('place', sa.Numeric(), nullable=True),
        sa.Column('points', sa.Numeric(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('meet_event_id', 'athlete_id', name='uq_result_meet_event_athlete'),
    )
    op.create_index('ix_result_athlete_id', 'result', ['athlete_id'])

    op.create_table(
        'announcement',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('pinned', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('auth_user.id'), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Messaging
    op.create_table(
        'message_thread',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('auth_user.id'), nullable=False),
        sa.Column('subject', sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        'message_thread_participant',
        sa.Column('thread_id', sa.Uuid(), sa.ForeignKey('message_thread.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('auth_user.id'), primary_key=True),
        sa.Column('added_by', sa.Uuid(), sa.ForeignKey('auth_user.id'), nullable=True),
        _created_at(),
        sa.Column('last_read_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_message_thread_participant_user_id', 'message_thread_participant', ['user_id'])

    op.create_table(
        'message',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('thread_id', sa.Uuid(), sa.ForeignKey('message_thread.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_user_id', sa.Uuid(), sa.ForeignKey('auth_user.id'), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index('ix_message_thread_created', 'message', ['thread_id', 'created_at'])

    # Roster medical info
    op.create_table(
        'emergency_contact',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('athlete_user_id', sa.Uuid(), sa.ForeignKey('profile.user_id'), nullable=False),
        sa.Column('contact_name', sa.Text(), nullable=False),
        sa.Column('relationship', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_emergency_contact_athlete_user_id', 'emergency_contact', ['athlete_user_id'])

    op.create_table(
        'athlete_medication',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('athlete_user_id', sa.Uuid(), sa.ForeignKey('profile.user_id'), nullable=False),
        sa.Column('medication_name', sa.Text(), nullable=False),
        sa.Column('dosage', sa.Text(), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_athlete_medication_athlete_user_id', 'athlete_medication', ['athlete_user_id'])


def downgrade() -> None:
    op.drop_table('athlete_medication')
    op.drop_table('emergency_contact')
    op.drop_table('message')
    op.drop_table('message_thread_participant')
    op.drop_table('message_thread')
    op.drop_table('announcement')
    op.drop_table('result')
    op.drop_table('assignment')
    op.drop_table('meet_event')
    op.drop_table('event')
    op.drop_table('meet')
    op.drop_table('profile')
    op.drop_table('auth_user')
