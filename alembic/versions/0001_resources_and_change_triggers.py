"""Projects, tasks, comments and their change-notification triggers

Revision ID: 0001_resources_and_change_triggers
Revises:
Create Date: 2025-11-03 00:00:00.000000
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_resources_and_change_triggers"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

WATCHED_TABLES = ("projects", "tasks", "comments")

task_status = postgresql.ENUM("todo", "in_progress", "done", name="task_status", create_type=False)
task_priority = postgresql.ENUM("low", "medium", "high", name="task_priority", create_type=False)


def upgrade() -> None:
    """Create resource tables and the NOTIFY triggers that feed the change listener."""
    bind = op.get_bind()
    task_status.create(bind, checkfirst=True)
    task_priority.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
    )
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "project_id",
            sa.Integer(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("status", task_status, nullable=False, server_default="todo"),
        sa.Column("priority", task_priority, nullable=False, server_default="medium"),
        sa.Column(
            "assignee_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "task_id",
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_comments_task_id", "comments", ["task_id"])

    # Channel name is "<table>_changes"; payload is {table, operation, record}.
    # NOTIFY payloads must stay under 8000 bytes, otherwise the write itself
    # fails, so large rows are announced by id with "truncated": true.
    op.execute(
        """
        CREATE OR REPLACE FUNCTION public.notify_resource_change()
        RETURNS TRIGGER
        SET search_path = public
        AS $$
        DECLARE
            v_record RECORD;
            v_payload TEXT;
        BEGIN
            IF TG_OP = 'DELETE' THEN
                v_record := OLD;
            ELSE
                v_record := NEW;
            END IF;

            v_payload := json_build_object(
                'table', TG_TABLE_NAME,
                'operation', TG_OP,
                'record', row_to_json(v_record)
            )::text;

            IF octet_length(v_payload) >= 8000 THEN
                v_payload := json_build_object(
                    'table', TG_TABLE_NAME,
                    'operation', TG_OP,
                    'record', json_build_object('id', v_record.id),
                    'truncated', true
                )::text;
            END IF;

            PERFORM pg_notify(TG_TABLE_NAME || '_changes', v_payload);
            RETURN v_record;
        END;
        $$ LANGUAGE plpgsql;
        """
    )

    for table in WATCHED_TABLES:
        op.execute(
            f"""
            CREATE TRIGGER {table}_change_notify
            AFTER INSERT OR UPDATE OR DELETE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION public.notify_resource_change();
            """
        )


def downgrade() -> None:
    """Drop triggers, tables and enums."""
    for table in WATCHED_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS {table}_change_notify ON {table};")
    op.execute("DROP FUNCTION IF EXISTS public.notify_resource_change();")

    op.drop_index("ix_comments_task_id", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_tasks_project_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("projects")
    op.drop_table("users")

    bind = op.get_bind()
    task_priority.drop(bind, checkfirst=True)
    task_status.drop(bind, checkfirst=True)
