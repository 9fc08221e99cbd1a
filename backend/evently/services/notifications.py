# backend/evently/services/notifications.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from evently.core.email import EmailSender
from evently.models import EmailLog, EmailStatus, EmailTemplate, Event, Invite, RsvpResponse

logger = logging.getLogger("evently.email")


def deliver(
    db: Session,
    mailer: EmailSender,
    *,
    to_email: str,
    template: EmailTemplate,
    subject: str,
    text_body: str,
    invite_id: Optional[int] = None,
) -> EmailLog:
    """
    Send one email and record it in email_log. Does not commit.
    """
    result = mailer.send(to_email=to_email, subject=subject, text_body=text_body)

    log = EmailLog(
        to_email=to_email,
        template=template.value,
        subject=subject[:255],
        status=EmailStatus.SENT.value if result.delivered else EmailStatus.FAILED.value,
        provider_message_id=result.message_id or None,
        invite_id=invite_id,
        error=result.error,
    )
    db.add(log)

    if not result.delivered:
        logger.warning("email_not_delivered template=%s invite_id=%s error=%s", template.value, invite_id, result.error)

    return log


def _event_when(event: Event) -> str:
    if event.start_at is None:
        return "Date to be announced"
    return event.start_at.strftime("%A, %d %B %Y %H:%M") + f" ({event.timezone or 'UTC'})"


def invite_email(event: Event, invite: Invite, link: str) -> tuple[str, str]:
    greeting = f"Hi {invite.name}," if invite.name else "Hi,"
    lines = [
        greeting,
        "",
        f"You're invited to {event.title}.",
        f"When: {_event_when(event)}",
    ]
    if event.venue_name:
        lines.append(f"Where: {event.venue_name}" + (f", {event.city}" if event.city else ""))
    if invite.plus_ones_allowed:
        lines.append(f"You may bring up to {invite.plus_ones_allowed} guest(s).")
    lines += [
        "",
        "Let the host know if you can make it:",
        link,
        "",
        "This link is personal to you; please don't forward it.",
    ]
    return f"You're invited: {event.title}", "\n".join(lines)


def confirmation_email(event: Event, guest_name: str, response: str, guest_count: int) -> tuple[str, str]:
    if response == RsvpResponse.YES.value:
        headline = f"You're going to {event.title}!"
        detail = f"Party size: {guest_count}."
    elif response == RsvpResponse.NO.value:
        headline = f"You've declined {event.title}."
        detail = "Thanks for letting the host know."
    else:
        headline = f"You might attend {event.title}."
        detail = "You can update your response at any time using your invite link."

    body = "\n".join([
        f"Hi {guest_name},",
        "",
        headline,
        f"When: {_event_when(event)}",
        detail,
    ])
    return f"RSVP received: {event.title}", body


def verification_email(link: str, expires_in_hours: int) -> tuple[str, str]:
    body = (
        "Please confirm your email address for Evently.\n\n"
        f"Verification link (valid for {expires_in_hours} hours):\n{link}\n\n"
        "If you did not create an account, you can ignore this email."
    )
    return "Verify your email address", body
