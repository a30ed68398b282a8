"""Phery exception hierarchy.

Shared by the dispatcher, the response builder, the HTML helpers and the
application shell so every module raises and catches the same types.
"""

from dataclasses import dataclass

ERROR_CALLBACK = 0
"""A before/after hook that is not callable."""

ERROR_PROCESS = 1
"""The request envelope is missing or names an unknown function."""

ERROR_SET = 2
"""A remote function is registered twice or is not callable."""

ERROR_TO = 3
"""An HTML helper was called without a usable remote function."""

ERROR_CSRF = 4
"""The CSRF token sent with the request did not match the session."""


class PheryBaseError(Exception):
    """Base for all phery-specific errors."""


class PheryError(PheryBaseError):
    """A usage or processing error raised when exceptions mode is on.

    ``code`` is one of the ``ERROR_*`` constants of this module. With
    exceptions mode off, the same conditions are logged and the offending
    call returns an empty result instead.
    """

    def __init__(self, message: str, code: int) -> None:
        super().__init__(message)
        self.code = code

    def __repr__(self) -> str:
        return f"PheryError({str(self)!r}, code={self.code})"


class RestoreError(PheryBaseError):
    """Raised when a persisted response cannot be restored.

    Always raised, regardless of exceptions mode.
    """


class ConfigurationError(PheryBaseError):
    """Raised when app or dispatcher configuration is invalid.

    Typically caught during ``App._freeze()`` at startup, or when a
    feature that needs sessions is used without ``SessionMiddleware``.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(PheryBaseError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The ASGI handler
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: route exists but not for this HTTP method.

    Carries an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        super().__init__(
            status=405,
            detail=detail or f"Method not allowed. Allowed methods: {allow_value}",
            headers=(("Allow", allow_value),),
        )
