from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

MAX_USER_AGENT = 512


@dataclass(frozen=True)
class RequestContext:
    """Request metadata stamped on audit rows."""

    request_id: str
    ip: str | None = None
    user_agent: str | None = None


def client_ip(request: Request) -> str | None:
    forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    if forwarded:
        return forwarded[:64]
    return request.client.host if request.client else None


def get_request_context(request: Request) -> RequestContext:
    user_agent = request.headers.get("User-Agent")
    return RequestContext(
        request_id=getattr(request.state, "request_id", None) or "unknown",
        ip=client_ip(request),
        user_agent=user_agent[:MAX_USER_AGENT] if user_agent else None,
    )
