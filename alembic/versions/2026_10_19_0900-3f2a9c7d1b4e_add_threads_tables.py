"""add threads tables

Revision ID: 3f2a9c7d1b4e
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f2a9c7d1b4e"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: threads and thread_messages tables."""
    op.create_table(
        "threads",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("user_name", sa.String(length=128), nullable=False),
        sa.Column("channel_id", sa.String(length=128), nullable=True),
        sa.Column("scheduled_close_at", sa.DateTime(), nullable=True),
        sa.Column("scheduled_close_id", sa.String(length=64), nullable=True),
        sa.Column("scheduled_close_name", sa.String(length=128), nullable=True),
        sa.Column("scheduled_close_silent", sa.Boolean(), nullable=True),
        sa.Column("scheduled_suspend_at", sa.DateTime(), nullable=True),
        sa.Column("scheduled_suspend_id", sa.String(length=64), nullable=True),
        sa.Column("scheduled_suspend_name", sa.String(length=128), nullable=True),
        sa.Column("alert_id", sa.String(length=64), nullable=True),
        sa.Column(
            "last_message_number",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_threads_user_id_status", "threads", ["user_id", "status"], unique=False
    )

    op.create_table(
        "thread_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("thread_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("message_type", sa.String(length=32), nullable=False),
        sa.Column("message_number", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("user_name", sa.String(length=128), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "is_anonymous",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("dm_channel_id", sa.String(length=128), nullable=True),
        sa.Column("dm_message_id", sa.String(length=128), nullable=True),
        sa.Column("inbox_message_id", sa.String(length=128), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["thread_id"], ["threads.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "thread_id", "message_number", name="uq_thread_messages_thread_number"
        ),
    )
    op.create_index(
        "ix_thread_messages_thread_id_created_at",
        "thread_messages",
        ["thread_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_thread_messages_thread_id_dm_message_id",
        "thread_messages",
        ["thread_id", "dm_message_id"],
        unique=False,
    )


def downgrade() -> None:
    """Drop threads and thread_messages tables."""
    op.drop_index(
        "ix_thread_messages_thread_id_dm_message_id", table_name="thread_messages"
    )
    op.drop_index(
        "ix_thread_messages_thread_id_created_at", table_name="thread_messages"
    )
    op.drop_table("thread_messages")
    op.drop_index("ix_threads_user_id_status", table_name="threads")
    op.drop_table("threads")
