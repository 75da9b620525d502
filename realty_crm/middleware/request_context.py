# realty_crm/middleware/request_context.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
ACTOR_HEADER = "X-User-Id"


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    actor_id: Optional[str] = None


_ctx: ContextVar[Optional[RequestContext]] = ContextVar("realty_crm_request", default=None)


def current_request() -> Optional[RequestContext]:
    return _ctx.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds the request id and the raw acting-user header for the duration of a request.

    The id is taken from X-Request-ID when the caller sent one and echoed back.
    The actor header is recorded unvalidated; auth.get_actor decides whether it names a user.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or uuid.uuid4().hex
        actor = (request.headers.get(ACTOR_HEADER) or "").strip() or None

        ctx = RequestContext(request_id=rid, actor_id=actor)
        request.state.request_id = rid
        token = _ctx.set(ctx)
        try:
            resp = await call_next(request)
            resp.headers[REQUEST_ID_HEADER] = rid
            return resp
        finally:
            _ctx.reset(token)
