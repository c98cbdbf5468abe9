import logging
import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# Keys the authorization gate writes into ``request.state``.
STATE_VISITOR_ID = "visitor_id"
STATE_ACCESS = "access"


class AccessLogMiddleware:
    """
    Logs one line per HTTP request with the outcome of the authorization
    gate, and adds an ``X-Response-Time-Ms`` header.

    The gate dependencies record the authenticated visitor id and the
    access level they granted (``visitor`` or ``admin``) on
    ``request.state``; this middleware reads them back from
    ``scope["state"]`` once the response has started.  Anonymous requests
    are logged as ``visitor=-``.

    Pure ASGI rather than ``BaseHTTPMiddleware`` so the handler runs in
    the same task and shares ``scope["state"]`` with us.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        start = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", str(duration_ms).encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            logger.info(
                "%s %s -> %s visitor=%s access=%s %.2fms",
                scope["method"],
                scope["path"],
                status_code,
                state.get(STATE_VISITOR_ID, "-"),
                state.get(STATE_ACCESS, "anonymous"),
                (time.perf_counter() - start) * 1000,
            )
