from sqlalchemy import select

from app.core.roles import Role
from app.models.audit import FairAuditLog
from app.schemas.user import UserContext
from app.services import notifications
from app.services.notifications import APPROVAL_TO_CANDIDATE, REQUEST_TO_COMPANY, notify, render_template

CANDIDATE = UserContext(user_id="ana@example.com", email="ana@example.com", roles=[Role.CANDIDATE])
RECRUITER = UserContext(user_id="hr@acme.example.com", email="hr@acme.example.com", roles=[Role.RECRUITER])

REQUEST_PAYLOAD = {
    "recipient_email": "hr@acme.example.com",
    "company_name": "Acme",
    "candidate_name": "Ana <b>Ruiz</b>",
    "candidate_email": "ana@example.com",
    "date": "20/05/2030",
    "time": "09:00 - 09:30",
    "cv_url": "https://files.example.com/cv.pdf",
}


async def test_candidate_request_is_processed_and_audited(db_session):
    meta = await notify(
        db_session, notification_type=REQUEST_TO_COMPANY, payload=REQUEST_PAYLOAD, actor=CANDIDATE, related_booking_id=5
    )
    assert meta["status"] == "skipped"
    assert meta["to"] == ["hr@acme.example.com"]
    logged = (await db_session.execute(select(FairAuditLog))).scalars().one()
    assert logged.entity_id == "5"
    assert logged.actor_email == "ana@example.com"


async def test_wrong_role_is_rejected(db_session):
    meta = await notify(db_session, notification_type=APPROVAL_TO_CANDIDATE, payload={}, actor=CANDIDATE)
    assert meta["status"] == "rejected"
    assert meta["reason"] == "forbidden_role"


async def test_demo_actor_is_rejected(db_session):
    demo = UserContext(user_id="demo", email="demo@example.com", roles=[Role.CANDIDATE], is_demo=True)
    meta = await notify(db_session, notification_type=REQUEST_TO_COMPANY, payload=REQUEST_PAYLOAD, actor=demo)
    assert meta["reason"] == "forbidden_role"


async def test_invalid_payload_is_rejected(db_session):
    payload = {**REQUEST_PAYLOAD, "recipient_email": "not-an-email", "candidate_name": "x" * 201}
    meta = await notify(db_session, notification_type=REQUEST_TO_COMPANY, payload=payload, actor=CANDIDATE)
    assert meta["status"] == "rejected"
    assert meta["reason"] == "invalid_payload"
    assert meta["errors"] == 2


async def test_unknown_type_is_rejected(db_session):
    meta = await notify(db_session, notification_type="weekly_digest", payload={}, actor=RECRUITER)
    assert meta["reason"] == "unknown_type"


async def test_send_failure_is_reported_not_raised(db_session, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("gmail down")

    monkeypatch.setattr(notifications, "send_email", boom)
    meta = await notify(db_session, notification_type=REQUEST_TO_COMPANY, payload=REQUEST_PAYLOAD, actor=CANDIDATE)
    assert meta["status"] == "failed"
    assert "gmail down" in meta["error"]


async def test_sent_message_id_is_recorded(db_session, monkeypatch):
    monkeypatch.setattr(notifications, "send_email", lambda to, subject, body: "msg-1")
    payload = {
        "recipient_email": "ana@example.com",
        "candidate_name": "Ana",
        "company_name": "Acme",
        "date": "20/05/2030",
        "time": "09:00 - 09:30",
    }
    meta = await notify(db_session, notification_type=APPROVAL_TO_CANDIDATE, payload=payload, actor=RECRUITER)
    assert meta["status"] == "sent"
    assert meta["message_id"] == "msg-1"


def test_template_values_are_escaped():
    context = notifications._template_context(
        REQUEST_TO_COMPANY, notifications.CompanyRequestPayload.model_validate(REQUEST_PAYLOAD)
    )
    body = render_template("booking_request", context)
    assert "Ana &lt;b&gt;Ruiz&lt;/b&gt;" in body
    assert 'href="https://files.example.com/cv.pdf"' in body
