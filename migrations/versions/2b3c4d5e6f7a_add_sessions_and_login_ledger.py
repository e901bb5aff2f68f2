"""add sessions, login_attempts, device_switch_events and login_bans

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-02 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "2b3c4d5e6f7a"
down_revision = "1a2b3c4d5e6f"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("valid", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_activity", sa.DateTime(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column("device_fingerprint", sa.String(length=128), nullable=True),
        sa.Column("owner_label", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("sessions", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_sessions_user_id"), ["user_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_sessions_valid"), ["valid"], unique=False)

    op.create_table(
        "login_attempts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False),
        sa.Column("cooldown_until", sa.DateTime(), nullable=True),
        sa.Column("last_attempt_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("login_attempts", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_login_attempts_user_id"), ["user_id"], unique=True)

    op.create_table(
        "device_switch_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("from_fingerprint", sa.String(length=128), nullable=True),
        sa.Column("to_fingerprint", sa.String(length=128), nullable=False),
        sa.Column("from_ip", sa.String(length=64), nullable=True),
        sa.Column("to_ip", sa.String(length=64), nullable=True),
        sa.Column("switched_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("device_switch_events", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_device_switch_events_user_id"), ["user_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_device_switch_events_switched_at"), ["switched_at"], unique=False)

    op.create_table(
        "login_bans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("banned_until", sa.DateTime(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("cooldown_level", sa.Integer(), nullable=False),
        sa.Column("switch_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("login_bans", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_login_bans_user_id"), ["user_id"], unique=True)


def downgrade():
    with op.batch_alter_table("login_bans", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_login_bans_user_id"))
    op.drop_table("login_bans")

    with op.batch_alter_table("device_switch_events", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_device_switch_events_switched_at"))
        batch_op.drop_index(batch_op.f("ix_device_switch_events_user_id"))
    op.drop_table("device_switch_events")

    with op.batch_alter_table("login_attempts", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_login_attempts_user_id"))
    op.drop_table("login_attempts")

    with op.batch_alter_table("sessions", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_sessions_valid"))
        batch_op.drop_index(batch_op.f("ix_sessions_user_id"))
    op.drop_table("sessions")
