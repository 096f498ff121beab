"""row level security

Revision ID: 002
Revises: 001
Create Date: 2025-03-01 00:10:00.000000

Installs PostgreSQL row-level security mirroring core/policy.py for sessions
that reach the tables directly (not as the table owner). The requester is
taken from the `app.current_user_id` setting; helper functions run as
SECURITY DEFINER so role and participation lookups don't recurse into the
policies they serve. No-op on other dialects.
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


TEAM_WIDE = ('meet', 'event', 'meet_event', 'announcement')
ATHLETE_OWNED = {
    'assignment': 'athlete_id',
    'result': 'athlete_id',
    'emergency_contact': 'athlete_user_id',
    'athlete_medication': 'athlete_user_id',
}
ALL_TABLES = (
    ('profile', 'message_thread', 'message_thread_participant', 'message')
    + TEAM_WIDE
    + tuple(ATHLETE_OWNED)
)


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == 'postgresql'


def upgrade() -> None:
    if not _is_postgres():
        return

    op.execute("""
        CREATE OR REPLACE FUNCTION app_current_user() RETURNS uuid
        LANGUAGE sql STABLE AS $$
            SELECT nullif(current_setting('app.current_user_id', true), '')::uuid
        $$;
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION app_is_staff() RETURNS boolean
        LANGUAGE sql STABLE SECURITY DEFINER SET search_path = public AS $$
            SELECT EXISTS (
                SELECT 1 FROM profile
                WHERE user_id = app_current_user()
                  AND role IN ('coach', 'assistant_coach')
            )
        $$;
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION app_is_participant(t uuid) RETURNS boolean
        LANGUAGE sql STABLE SECURITY DEFINER SET search_path = public AS $$
            SELECT EXISTS (
                SELECT 1 FROM message_thread_participant
                WHERE thread_id = t AND user_id = app_current_user()
            )
        $$;
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION app_thread_is_empty(t uuid) RETURNS boolean
        LANGUAGE sql STABLE SECURITY DEFINER SET search_path = public AS $$
            SELECT NOT EXISTS (SELECT 1 FROM message WHERE thread_id = t)
        $$;
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION app_created_thread(t uuid) RETURNS boolean
        LANGUAGE sql STABLE SECURITY DEFINER SET search_path = public AS $$
            SELECT EXISTS (
                SELECT 1 FROM message_thread
                WHERE id = t AND created_by = app_current_user()
            )
        $$;
    """)

    for table in ALL_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")

    # Profiles: self or staff, read and update. No client insert/delete.
    op.execute("""
        CREATE POLICY profile_select ON profile FOR SELECT
        USING (user_id = app_current_user() OR app_is_staff())
    """)
    op.execute("""
        CREATE POLICY profile_update ON profile FOR UPDATE
        USING (user_id = app_current_user() OR app_is_staff())
        WITH CHECK (user_id = app_current_user() OR app_is_staff())
    """)

    # Threads
    op.execute("""
        CREATE POLICY message_thread_select ON message_thread FOR SELECT
        USING (app_is_participant(id))
    """)
    op.execute("""
        CREATE POLICY message_thread_insert ON message_thread FOR INSERT
        WITH CHECK (created_by = app_current_user() AND app_is_staff())
    """)

    # Participants: readable by fellow participants; added only by the staff
    # creator before the first message; each user updates only their own row.
    op.execute("""
        CREATE POLICY participant_select ON message_thread_participant FOR SELECT
        USING (app_is_participant(thread_id))
    """)
    op.execute("""
        CREATE POLICY participant_insert ON message_thread_participant FOR INSERT
        WITH CHECK (
            added_by = app_current_user()
            AND app_is_staff()
            AND app_created_thread(thread_id)
            AND app_thread_is_empty(thread_id)
        )
    """)
    op.execute("""
        CREATE POLICY participant_update ON message_thread_participant FOR UPDATE
        USING (user_id = app_current_user())
        WITH CHECK (user_id = app_current_user())
    """)

    # Messages: participants read and post; no update/delete policy exists.
    op.execute("""
        CREATE POLICY message_select ON message FOR SELECT
        USING (app_is_participant(thread_id))
    """)
    op.execute("""
        CREATE POLICY message_insert ON message FOR INSERT
        WITH CHECK (sender_user_id = app_current_user() AND app_is_participant(thread_id))
    """)

    for table in TEAM_WIDE:
        op.execute(f"CREATE POLICY {table}_select ON {table} FOR SELECT USING (app_current_user() IS NOT NULL)")
        op.execute(f"CREATE POLICY {table}_write ON {table} FOR ALL USING (app_is_staff()) WITH CHECK (app_is_staff())")

    for table, owner in ATHLETE_OWNED.items():
        op.execute(
            f"CREATE POLICY {table}_select ON {table} FOR SELECT "
            f"USING ({owner} = app_current_user() OR app_is_staff())"
        )
        op.execute(f"CREATE POLICY {table}_write ON {table} FOR ALL USING (app_is_staff()) WITH CHECK (app_is_staff())")


def downgrade() -> None:
    if not _is_postgres():
        return

    for table, _owner in ATHLETE_OWNED.items():
        op.execute(f"DROP POLICY IF EXISTS {table}_write ON {table}")
        op.execute(f"DROP POLICY IF EXISTS {table}_select ON {table}")
    for table in TEAM_WIDE:
        op.execute(f"DROP POLICY IF EXISTS {table}_write ON {table}")
        op.execute(f"DROP POLICY IF EXISTS {table}_select ON {table}")

    op.execute("DROP POLICY IF EXISTS message_insert ON message")
    op.execute("DROP POLICY IF EXISTS message_select ON message")
    op.execute("DROP POLICY IF EXISTS participant_update ON message_thread_participant")
    op.execute("DROP POLICY IF EXISTS participant_insert ON message_thread_participant")
    op.execute("DROP POLICY IF EXISTS participant_select ON message_thread_participant")
    op.execute("DROP POLICY IF EXISTS message_thread_insert ON message_thread")
    op.execute("DROP POLICY IF EXISTS message_thread_select ON message_thread")
    op.execute("DROP POLICY IF EXISTS profile_update ON profile")
    op.execute("DROP POLICY IF EXISTS profile_select ON profile")

    for table in ALL_TABLES:
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")

    for fn in ('app_created_thread(uuid)', 'app_thread_is_empty(uuid)', 'app_is_participant(uuid)', 'app_is_staff()', 'app_current_user()'):
        op.execute(f"DROP FUNCTION IF EXISTS {fn}")
