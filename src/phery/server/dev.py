"""Development server.

Starts a uvicorn ASGI server with the live phery App object.
"""

from phery.errors import ConfigurationError


def run_dev_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = False,
    log_level: str = "info",
    app_path: str | None = None,
) -> None:
    """Start a uvicorn server with the given App.

    Args:
        app: ASGI callable (phery App instance).
        host: Bind host address.
        port: Bind port number.
        reload: Restart on file changes. uvicorn can only reload an app
            given as an import string, so this needs *app_path*.
        log_level: uvicorn log level (``"debug"``, ``"info"``, ...).
        app_path: Optional ``"module:attribute"`` import string.
    """
    try:
        import uvicorn
    except ImportError as exc:
        msg = "The development server requires uvicorn. Install it with: pip install uvicorn"
        raise ConfigurationError(msg) from exc

    if reload and app_path is None:
        msg = "reload=True needs app_path, e.g. run_dev_server(app, ..., app_path='myapp:app')"
        raise ConfigurationError(msg)

    target = app_path if reload else app
    uvicorn.run(target, host=host, port=port, reload=reload, log_level=log_level)
