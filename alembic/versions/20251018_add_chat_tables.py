"""Add chat conversation, message and memory tables

Revision ID: 20251018_add_chat_tables
Revises:
Create Date: 2025-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20251018_add_chat_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "chat_conversation",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("owner_id", sa.String(100), nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("archived_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "metadata",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
    )

    op.create_table(
        "chat_message",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "conversation_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("chat_conversation.id", ondelete="CASCADE"),
            nullable=False,
        ),
        # Store-assigned order of the transcript
        sa.Column(
            "sequence",
            sa.BigInteger,
            sa.Identity(always=True),
            nullable=False,
            unique=True,
        ),
        sa.Column("role", sa.String(20), nullable=False),  # user, assistant, system
        sa.Column("content", sa.Text, nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
    )

    op.create_table(
        "chat_memory",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("owner_id", sa.String(100), nullable=False, server_default=""),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default="general"),
        sa.Column("importance", sa.Float, nullable=False, server_default="5"),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("owner_id", "key", name="uq_chat_memory_owner_key"),
    )

    op.create_index("ix_chat_conversation_owner_id", "chat_conversation", ["owner_id"])
    op.create_index(
        "ix_chat_conversation_owner_updated",
        "chat_conversation",
        ["owner_id", "updated_at"],
    )
    op.create_index("ix_chat_message_conversation_id", "chat_message", ["conversation_id"])
    op.create_index(
        "ix_chat_memory_owner_importance", "chat_memory", ["owner_id", "importance"]
    )


def downgrade() -> None:
    op.drop_index("ix_chat_memory_owner_importance", table_name="chat_memory")
    op.drop_index("ix_chat_message_conversation_id", table_name="chat_message")
    op.drop_index("ix_chat_conversation_owner_updated", table_name="chat_conversation")
    op.drop_index("ix_chat_conversation_owner_id", table_name="chat_conversation")

    op.drop_table("chat_memory")
    op.drop_table("chat_message")
    op.drop_table("chat_conversation")
