"""Serverless ASGI entrypoint: the deployed function serves the RankScore API under ``/api``."""
from starlette.types import ASGIApp, Receive, Scope, Send

from rankscore.main import app as inner_app

API_PREFIX = "/api"


def mount_under_prefix(app: ASGIApp, prefix: str = API_PREFIX) -> ASGIApp:
    """Serve ``app`` both at its own paths and below ``prefix``.

    Preflight requests pass through unchanged; the inner app's CORS middleware answers them.
    """

    async def prefixed(scope: Scope, receive: Receive, send: Send) -> None:
        path = scope.get("path", "")
        if scope["type"] in ("http", "websocket") and (path == prefix or path.startswith(prefix + "/")):
            scope = {**scope, "path": path[len(prefix):] or "/"}
        await app(scope, receive, send)

    return prefixed


app = mount_under_prefix(inner_app)
