"""HTTP middleware -- admin-secret auth and quiet access logging."""

from __future__ import annotations

import hmac
import logging

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger

from ..config.settings import Settings

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/api/health"})

# Bot Framework authenticates /api/messages itself (JWT in process_activity).
_PUBLIC_PREFIXES = (
    "/api/health",
    "/api/messages",
)


class QuietAccessLogger(AbstractAccessLogger):
    """Demotes health-check and rejected-auth entries to DEBUG."""

    def log(self, request: web.BaseRequest, response: web.StreamResponse, time: float) -> None:
        status = response.status
        if request.path in _QUIET_PATHS or status == 401:
            level = logging.DEBUG
        else:
            level = logging.INFO
        self.logger.log(
            level,
            "%s %s %s %s %.3fs",
            request.remote,
            request.method,
            request.path,
            status,
            time,
        )


def _matches(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode(), expected.encode())


def create_auth_middleware(settings: Settings):
    """Require ``ADMIN_SECRET`` on ``/api/*`` endpoints except the public ones.

    The secret is accepted as a Bearer token or, for browser WebSocket
    clients that cannot set headers, as a ``token`` query parameter.
    """

    @web.middleware
    async def auth_middleware(request: web.Request, handler):  # type: ignore[type-arg]
        secret = settings.admin_secret
        if not secret:
            return await handler(request)

        path = request.path
        if not path.startswith("/api/"):
            return await handler(request)
        if any(path.startswith(p) for p in _PUBLIC_PREFIXES):
            return await handler(request)

        auth = request.headers.get("Authorization", "")
        if _matches(auth, f"Bearer {secret}"):
            return await handler(request)

        token_param = request.query.get("token", "")
        if token_param and _matches(token_param, secret):
            return await handler(request)

        logger.warning("[auth] rejected %s %s from %s", request.method, path, request.remote)
        return web.json_response(
            {"status": "unauthorized", "message": "Invalid or missing admin secret"},
            status=401,
        )

    return auth_middleware
