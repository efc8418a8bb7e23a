from __future__ import annotations

import html
import logging
from pathlib import Path
from typing import Any, Literal

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, EmailStr, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.paths import app_root
from app.core.roles import Role, has_required_role
from app.schemas.user import UserContext
from app.services.audit_service import write_audit_log
from app.services.gmail_service import send_email

logger = logging.getLogger("feriamatch.notifications")

REQUEST_TO_COMPANY = "request_to_company"
APPROVAL_TO_CANDIDATE = "approval_to_candidate"

NotificationType = Literal["request_to_company", "approval_to_candidate"]


class CompanyRequestPayload(BaseModel):
    recipient_email: EmailStr
    company_name: str = Field(min_length=1, max_length=200)
    candidate_name: str = Field(min_length=1, max_length=200)
    candidate_email: EmailStr
    date: str = Field(min_length=1, max_length=100)
    time: str = Field(min_length=1, max_length=100)
    cv_url: str | None = Field(default=None, max_length=2048)


class CandidateApprovalPayload(BaseModel):
    recipient_email: EmailStr
    candidate_name: str = Field(min_length=1, max_length=200)
    company_name: str = Field(min_length=1, max_length=200)
    date: str = Field(min_length=1, max_length=100)
    time: str = Field(min_length=1, max_length=100)


_SPECS: dict[str, dict[str, Any]] = {
    REQUEST_TO_COMPANY: {
        "model": CompanyRequestPayload,
        "roles": [Role.CANDIDATE],
        "template": "booking_request",
        "subject": "New interview request - {app_name}",
    },
    APPROVAL_TO_CANDIDATE: {
        "model": CandidateApprovalPayload,
        "roles": [Role.RECRUITER, Role.ADMIN],
        "template": "booking_approved",
        "subject": "Interview confirmed - {app_name}",
    },
}


def _template_path(name: str) -> Path:
    return app_root() / "templates" / "email" / f"{name}.html"


def render_template(name: str, context: dict[str, Any]) -> str:
    raw = _template_path(name).read_text(encoding="utf-8")
    return raw.format_map({k: ("" if v is None else v) for k, v in context.items()})


def _template_context(notification_type: str, payload: BaseModel) -> dict[str, Any]:
    context = {k: html.escape(str(v)) for k, v in payload.model_dump().items() if v is not None}
    context["app_name"] = html.escape(settings.app_name)
    if notification_type == REQUEST_TO_COMPANY:
        cv_url = getattr(payload, "cv_url", None)
        context["cv_block"] = (
            f'<p>CV: <a href="{html.escape(cv_url, quote=True)}">{html.escape(cv_url)}</a></p>' if cv_url else ""
        )
    return context


async def notify(
    session: AsyncSession,
    *,
    notification_type: NotificationType,
    payload: dict[str, Any],
    actor: UserContext,
    related_booking_id: int | None = None,
) -> dict[str, Any]:
    """Best-effort email dispatch. Every failure is logged and reported in the returned meta, never raised."""
    meta: dict[str, Any] = {"type": notification_type, "booking_id": related_booking_id}
    spec = _SPECS.get(notification_type)
    if spec is None:
        meta.update(status="rejected", reason="unknown_type")
    elif actor.is_demo or not has_required_role(actor.roles, spec["roles"]):
        meta.update(status="rejected", reason="forbidden_role")
    else:
        try:
            validated = spec["model"].model_validate(payload)
        except ValidationError as exc:
            meta.update(status="rejected", reason="invalid_payload", errors=len(exc.errors()))
        else:
            meta["to"] = [validated.recipient_email]
            subject = spec["subject"].format(app_name=settings.app_name)
            try:
                html_body = render_template(spec["template"], _template_context(notification_type, validated))
                message_id = await run_in_threadpool(send_email, [validated.recipient_email], subject, html_body)
                meta["status"] = "sent" if message_id else "skipped"
                if message_id:
                    meta["message_id"] = message_id
            except Exception as exc:  # noqa: BLE001
                meta.update(status="failed", error=str(exc))

    if meta["status"] in {"failed", "rejected"}:
        logger.warning("notification_not_sent", extra=meta)
    else:
        logger.info("notification_processed", extra=meta)

    try:
        await write_audit_log(
            session,
            actor=actor,
            action="NOTIFICATION",
            entity_type="fair_booking",
            entity_id=related_booking_id if related_booking_id is not None else "-",
            after=meta,
        )
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("notification_audit_failed", extra={"type": notification_type})
    return meta
