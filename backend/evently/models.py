# backend/evently/models.py
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Text,
    Index,
    DateTime,
    Boolean,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text

from evently.db.base import Base

# Cross-DB timestamp default (SQLite + Postgres)
DB_NOW = text("CURRENT_TIMESTAMP")


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class EventVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    UNLISTED = "UNLISTED"
    PRIVATE = "PRIVATE"


class InviteStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    OPENED = "OPENED"
    RESPONDED = "RESPONDED"
    BOUNCED = "BOUNCED"
    EXPIRED = "EXPIRED"


class RsvpResponse(str, Enum):
    YES = "YES"
    NO = "NO"
    MAYBE = "MAYBE"


class EmailTemplate(str, Enum):
    INVITE = "INVITE"
    CONFIRMATION = "CONFIRMATION"
    VERIFICATION = "VERIFICATION"


class EmailStatus(str, Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    OPENED = "OPENED"
    FAILED = "FAILED"
    BOUNCED = "BOUNCED"


class User(Base):
    """
    Organizer account.

    Email verification stores only the digest of the emailed token
    (verification_token_hash); it is cleared once the link is used.
    """
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)
    name = Column(String(200), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, server_default=sa.true())

    email_verified = Column(Boolean, nullable=False, default=False, server_default=sa.false())
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    verification_token_hash = Column(String(64), nullable=True, index=True)
    verification_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    events = relationship("Event", back_populates="owner", cascade="all, delete-orphan")


class Event(Base):
    __tablename__ = "event"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    start_at = Column(DateTime(timezone=True), nullable=True)
    end_at = Column(DateTime(timezone=True), nullable=True)
    timezone = Column(String(64), nullable=False, server_default=text("'UTC'"), default="UTC")
    venue_name = Column(String(200), nullable=True)
    city = Column(String(120), nullable=True)

    status = Column(String(16), nullable=False, default=EventStatus.DRAFT.value, server_default=text("'DRAFT'"))
    visibility = Column(
        String(16), nullable=False, default=EventVisibility.PRIVATE.value, server_default=text("'PRIVATE'")
    )
    max_attendees = Column(Integer, nullable=True)

    # Shareable draft preview link (digest only)
    preview_token_hash = Column(String(64), nullable=True, unique=True)
    preview_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    owner = relationship("User", back_populates="events")
    invites = relationship("Invite", back_populates="event", cascade="all, delete-orphan")
    rsvps = relationship("Rsvp", back_populates="event", cascade="all, delete-orphan")


class Invite(Base):
    """
    One guest invitation. The RSVP link carries the plaintext token;
    only token_hash is stored.
    """
    __tablename__ = "invite"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("event.id", ondelete="CASCADE"), nullable=False, index=True)

    email = Column(String(255), nullable=False)
    name = Column(String(200), nullable=True)

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, default=InviteStatus.PENDING.value, server_default=text("'PENDING'"))
    plus_ones_allowed = Column(Integer, nullable=False, default=0, server_default=text("0"))

    expires_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    event = relationship("Event", back_populates="invites")
    rsvp = relationship("Rsvp", back_populates="invite", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("event_id", "email", name="uq_invite_event_email"),
    )


class Rsvp(Base):
    __tablename__ = "rsvp"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("event.id", ondelete="CASCADE"), nullable=False, index=True)
    # Null for public (non-invite) RSVPs
    invite_id = Column(Integer, ForeignKey("invite.id", ondelete="CASCADE"), nullable=True, unique=True)

    response = Column(String(8), nullable=False)
    guest_name = Column(String(200), nullable=False)
    guest_email = Column(String(255), nullable=True)
    guest_count = Column(Integer, nullable=False, default=1, server_default=text("1"))
    notes = Column(Text, nullable=True)

    responded_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    event = relationship("Event", back_populates="rsvps")
    invite = relationship("Invite", back_populates="rsvp")

    __table_args__ = (
        Index("ix_rsvp_event_email", "event_id", "guest_email"),
        Index("ix_rsvp_event_responded", "event_id", "responded_at"),
    )


class EmailLog(Base):
    """
    Outbound email record; delivery status is updated by the
    /webhooks/email-events callback.
    """
    __tablename__ = "email_log"

    id = Column(Integer, primary_key=True, index=True)
    to_email = Column(String(255), nullable=False)
    template = Column(String(16), nullable=False)
    subject = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False, default=EmailStatus.QUEUED.value, server_default=text("'QUEUED'"))
    provider_message_id = Column(String(255), nullable=True, unique=True, index=True)
    invite_id = Column(Integer, ForeignKey("invite.id", ondelete="SET NULL"), nullable=True, index=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
