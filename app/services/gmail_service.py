from __future__ import annotations

import base64
import logging
from email.mime.text import MIMEText
from email.utils import formataddr

from google.oauth2 import service_account
from googleapiclient.discovery import build

from app.core.config import settings
from app.core.paths import resolve_repo_path

logger = logging.getLogger("feriamatch.gmail")

GMAIL_SEND_SCOPE = "https://www.googleapis.com/auth/gmail.send"


def _sender_header() -> str:
    name = (settings.gmail_sender_name or "").strip()
    return formataddr((name, settings.gmail_sender_email)) if name else settings.gmail_sender_email


def build_raw_message(to: list[str], subject: str, html_body: str, cc: list[str] | None = None) -> str:
    """Base64url encoded RFC 2822 message as the Gmail API expects it."""
    message = MIMEText(html_body, "html", "utf-8")
    message["to"] = ", ".join(to)
    if cc:
        message["cc"] = ", ".join(cc)
    message["subject"] = subject
    message["from"] = _sender_header()
    return base64.urlsafe_b64encode(message.as_bytes()).decode()


def _gmail_client():
    if not settings.google_application_credentials:
        raise RuntimeError("FM_GOOGLE_APPLICATION_CREDENTIALS is not set")
    if not settings.gmail_sender_email:
        raise RuntimeError("FM_GMAIL_SENDER_EMAIL is not set")
    credentials = service_account.Credentials.from_service_account_file(
        str(resolve_repo_path(settings.google_application_credentials)), scopes=[GMAIL_SEND_SCOPE]
    )
    # Domain-wide delegation: the service account sends as the sender mailbox.
    return build("gmail", "v1", credentials=credentials.with_subject(settings.gmail_sender_email), cache_discovery=False)


def send_email(to: list[str], subject: str, html_body: str, cc: list[str] | None = None) -> str | None:
    """Send through Gmail and return the message id; ``None`` when sending is disabled."""
    if not settings.enable_gmail:
        return None
    raw = build_raw_message(to, subject, html_body, cc)
    response = _gmail_client().users().messages().send(userId="me", body={"raw": raw}).execute()
    message_id = response.get("id")
    logger.info("gmail_sent", extra={"to": to, "message_id": message_id})
    return message_id
