import base64
from email import message_from_bytes

from app.core.config import settings
from app.services.gmail_service import build_raw_message, send_email


def test_disabled_gmail_sends_nothing():
    assert settings.enable_gmail is False
    assert send_email(["ana@example.com"], "Hi", "<p>Hi</p>") is None


def test_raw_message_headers(monkeypatch):
    monkeypatch.setattr(settings, "gmail_sender_email", "fair@example.com")
    monkeypatch.setattr(settings, "gmail_sender_name", "FeriaMatch")
    raw = build_raw_message(["a@example.com", "b@example.com"], "Interview confirmed", "<p>ok</p>", cc=["c@example.com"])
    message = message_from_bytes(base64.urlsafe_b64decode(raw))
    assert message["to"] == "a@example.com, b@example.com"
    assert message["cc"] == "c@example.com"
    assert message["from"] == "FeriaMatch <fair@example.com>"
    assert message.get_content_type() == "text/html"
