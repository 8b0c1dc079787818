"""add member connections and extended profile fields

Revision ID: 20261018_02
Revises: 20261018_01
Create Date: 2026-10-18 12:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_02"
down_revision = "20261018_01"
branch_labels = None
depends_on = None


CONNECTION_STATUS = sa.Enum("pending", "accepted", "declined", name="connection_status")


def upgrade() -> None:
    op.add_column("users", sa.Column("summary", sa.Text(), nullable=False, server_default=""))
    op.add_column(
        "users", sa.Column("industry", sa.String(length=100), nullable=False, server_default="")
    )

    op.create_table(
        "user_connections",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("addressee_id", sa.Integer(), nullable=False),
        sa.Column("status", CONNECTION_STATUS, nullable=False, server_default="pending"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["addressee_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("requester_id", "addressee_id", name="uq_user_connection_pair"),
        mysql_charset="utf8mb4",
    )
    op.create_index(
        "ix_user_connections_addressee_status",
        "user_connections",
        ["addressee_id", "status"],
    )


def downgrade() -> None:
    op.drop_index("ix_user_connections_addressee_status", table_name="user_connections")
    op.drop_table("user_connections")
    op.drop_column("users", "industry")
    op.drop_column("users", "summary")

    bind = op.get_bind()
    CONNECTION_STATUS.drop(bind, checkfirst=True)
