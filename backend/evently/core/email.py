# backend/evently/core/email.py
from __future__ import annotations

import json
import logging
import smtplib
import urllib.request
import urllib.error
import uuid
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from fastapi import Request

from evently.core.config import Settings

logger = logging.getLogger("evently.email")


@dataclass
class EmailResult:
    message_id: str
    delivered: bool
    error: Optional[str] = None


class EmailSender:
    """
    Outbound email client.

    Built once at startup (see main.py) and handed to route handlers via the
    `get_mailer` dependency. Provider selection:
      - log    -> print to logs (default in dev)
      - smtp   -> smtplib using SMTP_* settings
      - resend -> Resend REST API

    send() never raises. An RSVP or invite flow should not 500 because
    email hiccuped; the result says whether the provider accepted it.
    """

    def __init__(self, settings: Settings):
        self.provider = (settings.email_provider or "log").strip().lower()
        self.from_email = settings.email_from
        self.resend_api_key = settings.resend_api_key
        self.smtp_host = settings.smtp_host
        self.smtp_port = int(settings.smtp_port or 587)
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.smtp_use_tls = bool(settings.smtp_use_tls)

    def send(
        self,
        *,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> EmailResult:
        to_email = (to_email or "").strip()
        if not to_email:
            return EmailResult(message_id="", delivered=False, error="missing recipient")

        if self.provider == "resend":
            return self._send_resend(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)

        if self.provider == "smtp":
            return self._send_smtp(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)

        return self._log_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)

    def _send_resend(
        self,
        *,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str],
    ) -> EmailResult:
        if not self.resend_api_key:
            logger.warning("EMAIL_PROVIDER=resend but RESEND_API_KEY is not set; falling back to log mode.")
            return self._log_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)

        payload = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "text": text_body,
        }
        if html_body:
            payload["html"] = html_body

        req = urllib.request.Request(
            url="https://api.resend.com/emails",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.resend_api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                body = json.loads(resp.read().decode("utf-8") or "{}")
            message_id = str(body.get("id") or uuid.uuid4().hex)
            logger.info("Email sent via Resend to=%s subject=%s message_id=%s", to_email, subject, message_id)
            return EmailResult(message_id=message_id, delivered=True)
        except urllib.error.HTTPError as e:
            body = ""
            try:
                body = e.read().decode("utf-8", errors="replace")
            except Exception:
                pass
            logger.error("Resend HTTPError status=%s body=%s", getattr(e, "code", None), body)
            return EmailResult(message_id=uuid.uuid4().hex, delivered=False, error=f"HTTP {getattr(e, 'code', '?')}")
        except Exception as e:
            logger.exception("Resend send failed")
            return EmailResult(message_id=uuid.uuid4().hex, delivered=False, error=str(e))

    def _send_smtp(
        self,
        *,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str],
    ) -> EmailResult:
        if not self.smtp_host or not self.smtp_user or not self.smtp_password:
            logger.warning("SMTP email requested but SMTP_* settings are incomplete; falling back to log mode.")
            return self._log_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)

        message_id = make_msgid(domain="evently")
        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg["Message-ID"] = message_id
        msg.set_content(text_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")

        clean_id = message_id.strip("<>")
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                if self.smtp_use_tls:
                    server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
            logger.info("Email sent via SMTP to=%s subject=%s message_id=%s", to_email, subject, clean_id)
            return EmailResult(message_id=clean_id, delivered=True)
        except Exception as e:
            logger.exception("SMTP send failed")
            return EmailResult(message_id=clean_id, delivered=False, error=str(e))

    def _log_email(
        self,
        *,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str],
    ) -> EmailResult:
        message_id = uuid.uuid4().hex
        print("=== EVENTLY EMAIL (log mode) ===")
        print("To:", to_email)
        print("Subject:", subject)
        print(text_body)
        if html_body:
            print("--- HTML ---")
            print(html_body)
        print("=== /EVENTLY EMAIL ===")
        return EmailResult(message_id=message_id, delivered=True)


def get_mailer(request: Request) -> EmailSender:
    return request.app.state.mailer
