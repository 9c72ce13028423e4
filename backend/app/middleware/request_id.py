"""
StackIt Backend — Request ID Middleware
========================================

What:  Assigns a short correlation id to each request and echoes it back in
       the `X-Request-ID` response header.
How:   A client-supplied `X-Request-ID` is reused; otherwise the first eight
       characters of a UUID4. The id is stored in a ContextVar so log lines
       and error bodies produced anywhere during the request can include it.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
