"""Signed cookie sessions.

Session data is serialized as JSON and signed with ``itsdangerous``.
The session dict lives in a ContextVar and is reachable through
``get_session()`` from handlers, remote functions and the CSRF helpers.
"""

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from phery.errors import ConfigurationError
from phery.http.request import Request
from phery.http.response import HTTPResponse
from phery.middleware.protocol import Next

_session_var: ContextVar[dict[str, Any] | None] = ContextVar("phery_session", default=None)


def get_session() -> dict[str, Any]:
    """Return the current session dict.

    Raises ``LookupError`` outside a request handled by
    ``SessionMiddleware``.
    """
    session = _session_var.get()
    if session is None:
        msg = (
            "No active session. Ensure SessionMiddleware is added "
            "to the app before accessing the session."
        )
        raise LookupError(msg)
    return session


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Session middleware configuration.

    ``secret_key`` is required: sessions are signed, not encrypted.
    """

    secret_key: str
    cookie_name: str = "phery_session"
    max_age: int = 86400  # 24 hours
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


class SessionMiddleware:
    """Load the signed session cookie, expose it, and write it back.

    Usage::

        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
    """

    __slots__ = ("_config", "_serializer")

    def __init__(self, config: SessionConfig) -> None:
        try:
            from itsdangerous import URLSafeTimedSerializer
        except ImportError:
            msg = (
                "SessionMiddleware requires the 'itsdangerous' package. "
                "Install it with: pip install itsdangerous"
            )
            raise ConfigurationError(msg) from None

        if not config.secret_key:
            msg = "SessionConfig.secret_key must not be empty."
            raise ConfigurationError(msg)

        self._config = config
        self._serializer = URLSafeTimedSerializer(config.secret_key, salt="phery.session")

    def _load(self, request: Request) -> dict[str, Any]:
        from itsdangerous import BadSignature

        cookie = request.cookies.get(self._config.cookie_name)
        if not cookie:
            return {}
        try:
            data = self._serializer.loads(cookie, max_age=self._config.max_age)
        except BadSignature:
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, response: HTTPResponse, session: dict[str, Any]) -> HTTPResponse:
        cfg = self._config
        return response.with_cookie(
            cfg.cookie_name,
            self._serializer.dumps(session),
            max_age=cfg.max_age,
            path=cfg.path,
            secure=cfg.secure,
            httponly=cfg.httponly,
            samesite=cfg.samesite,
        )

    async def __call__(self, request: Request, next: Next) -> HTTPResponse:
        session = self._load(request)
        token = _session_var.set(session)
        try:
            response = await next(request)
        finally:
            _session_var.reset(token)
        return self._save(response, session)
