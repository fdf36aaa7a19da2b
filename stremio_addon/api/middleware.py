"""
Middleware
Ordered, prefix-scoped middleware chain, request logging and routing of
user data segments
"""
import logging
import time
from typing import Awaitable, Callable, List, Optional, Tuple
from urllib.parse import unquote
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send
from stremio_addon.core.errors import AddonError

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Request, CallNext], Awaitable[Response]]


class MiddlewareChain:
    """
    Runs addon middleware in registration order.

    Each middleware receives the request and a ``call_next`` coroutine; it
    either returns its own response (short-circuit) or awaits ``call_next``.
    Middleware only runs for paths starting with its prefix. The runtime
    holds no lock around middleware, so shared state is the author's to guard.
    """

    def __init__(self):
        self._entries: List[Tuple[str, Middleware]] = []
        self._frozen = False

    def add(self, prefix: str, middleware: Middleware):
        if self._frozen:
            raise AddonError("Middleware can't be added after the addon started serving")
        if not prefix.startswith("/"):
            prefix = f"/{prefix}"
        self._entries.append((prefix, middleware))

    def freeze(self):
        self._frozen = True

    def __len__(self):
        return len(self._entries)

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        path = request.url.path
        chain = [fn for prefix, fn in self._entries if path.startswith(prefix)]

        async def run(index: int, req: Request) -> Response:
            if index == len(chain):
                return await call_next(req)
            return await chain[index](req, lambda next_req: run(index + 1, next_req))

        return await run(0, request)


def request_logger(log_ips: bool = False, log_user_agent: bool = False) -> Middleware:
    """Create middleware logging every request with its status and duration"""

    async def log_request(request: Request, call_next: CallNext) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        message = f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms"
        if log_ips and request.client:
            message += f" ip={request.client.host}"
        if log_user_agent:
            message += f" ua={request.headers.get('user-agent', '')}"
        logger.info(message)
        return response

    return log_request


def escape_segment(segment: str) -> str:
    return segment.replace("%", "%25").replace("/", "%2F")


def unescape_segment(segment: Optional[str]) -> Optional[str]:
    """Undo ``escape_segment`` on a path parameter"""
    if segment is None:
        return None
    return unquote(segment)


def routing_path(raw_path: bytes) -> str:
    """
    Percent-decode a raw request path for routing

    The first segment keeps encoded "/" (and "%") escaped, so a user data
    segment holding a slash still matches a single path parameter.
    """
    parts = [unquote(part) for part in raw_path.split(b"?", 1)[0].decode("latin-1").split("/")]
    if len(parts) > 1:
        parts[1] = escape_segment(parts[1])
    return "/".join(parts)


class UserDataPathMiddleware:
    """ASGI middleware routing on the raw path instead of the decoded one"""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] == "http" and scope.get("raw_path") and not scope.get("root_path"):
            scope = dict(scope)
            scope["path"] = routing_path(scope["raw_path"])
        await self.app(scope, receive, send)
