from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request


@dataclass(frozen=True)
class RequestContext:
    """Per-request values handed to the services explicitly."""

    request_id: str
    actor: Optional[str] = None


def resolve_request_id(raw: Optional[str]) -> str:
    return (raw or "").strip()[:64] or str(uuid.uuid4())


def get_request_context(
    request: Request,
    x_actor: Optional[str] = Header(None, alias="X-Actor"),
) -> RequestContext:
    request_id = getattr(request.state, "request_id", None) or resolve_request_id(
        request.headers.get("X-Request-ID")
    )
    actor = (x_actor or "").strip()[:128] or None
    return RequestContext(request_id=request_id, actor=actor)
