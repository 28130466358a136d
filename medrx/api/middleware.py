from __future__ import annotations

from collections.abc import Awaitable, Callable
from uuid import uuid4

from fastapi import Request
from starlette.responses import Response

from medrx.core.context import reset_current_profile_id, set_current_profile_id

REQUEST_ID_HEADER = "X-Request-Id"


async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    request.state.request_id = request_id

    # Auth sets the profile later in the request; start every request unscoped.
    token = set_current_profile_id(None)
    try:
        response = await call_next(request)
    finally:
        reset_current_profile_id(token)

    response.headers[REQUEST_ID_HEADER] = request_id
    return response
