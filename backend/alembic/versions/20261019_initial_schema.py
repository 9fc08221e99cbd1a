"""initial schema: users, events, invites, rsvps, email log

Revision ID: 5c1e2a9d7f01
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "5c1e2a9d7f01"
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_token_hash", sa.String(length=64), nullable=True),
        sa.Column("verification_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )
    op.create_index("ix_user_id", "user", ["id"])
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_verification_token_hash", "user", ["verification_token_hash"])

    op.create_table(
        "event",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default=sa.text("'UTC'")),
        sa.Column("venue_name", sa.String(length=200), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("visibility", sa.String(length=16), nullable=False, server_default=sa.text("'PRIVATE'")),
        sa.Column("max_attendees", sa.Integer(), nullable=True),
        sa.Column("preview_token_hash", sa.String(length=64), nullable=True, unique=True),
        sa.Column("preview_token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )
    op.create_index("ix_event_id", "event", ["id"])
    op.create_index("ix_event_owner_id", "event", ["owner_id"])
    op.create_index("ix_event_slug", "event", ["slug"], unique=True)

    op.create_table(
        "invite",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("event.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("plus_ones_allowed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.UniqueConstraint("event_id", "email", name="uq_invite_event_email"),
    )
    op.create_index("ix_invite_id", "invite", ["id"])
    op.create_index("ix_invite_event_id", "invite", ["event_id"])
    op.create_index("ix_invite_token_hash", "invite", ["token_hash"], unique=True)

    op.create_table(
        "rsvp",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("event.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "invite_id",
            sa.Integer(),
            sa.ForeignKey("invite.id", ondelete="CASCADE"),
            nullable=True,
            unique=True,
        ),
        sa.Column("response", sa.String(length=8), nullable=False),
        sa.Column("guest_name", sa.String(length=200), nullable=False),
        sa.Column("guest_email", sa.String(length=255), nullable=True),
        sa.Column("guest_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rsvp_id", "rsvp", ["id"])
    op.create_index("ix_rsvp_event_id", "rsvp", ["event_id"])
    op.create_index("ix_rsvp_event_email", "rsvp", ["event_id", "guest_email"])
    op.create_index("ix_rsvp_event_responded", "rsvp", ["event_id", "responded_at"])

    op.create_table(
        "email_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("to_email", sa.String(length=255), nullable=False),
        sa.Column("template", sa.String(length=16), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'QUEUED'")),
        sa.Column("provider_message_id", sa.String(length=255), nullable=True),
        sa.Column("invite_id", sa.Integer(), sa.ForeignKey("invite.id", ondelete="SET NULL"), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_email_log_id", "email_log", ["id"])
    op.create_index("ix_email_log_provider_message_id", "email_log", ["provider_message_id"], unique=True)
    op.create_index("ix_email_log_invite_id", "email_log", ["invite_id"])


def downgrade() -> None:
    op.drop_index("ix_email_log_invite_id", table_name="email_log")
    op.drop_index("ix_email_log_provider_message_id", table_name="email_log")
    op.drop_index("ix_email_log_id", table_name="email_log")
    op.drop_table("email_log")

    op.drop_index("ix_rsvp_event_responded", table_name="rsvp")
    op.drop_index("ix_rsvp_event_email", table_name="rsvp")
    op.drop_index("ix_rsvp_event_id", table_name="rsvp")
    op.drop_index("ix_rsvp_id", table_name="rsvp")
    op.drop_table("rsvp")

    op.drop_index("ix_invite_token_hash", table_name="invite")
    op.drop_index("ix_invite_event_id", table_name="invite")
    op.drop_index("ix_invite_id", table_name="invite")
    op.drop_table("invite")

    op.drop_index("ix_event_slug", table_name="event")
    op.drop_index("ix_event_owner_id", table_name="event")
    op.drop_index("ix_event_id", table_name="event")
    op.drop_table("event")

    op.drop_index("ix_user_verification_token_hash", table_name="user")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_index("ix_user_id", table_name="user")
    op.drop_table("user")
