"""Application and dispatcher configuration.

Both configs are frozen dataclasses: immutable after creation,
IDE-autocompletable, no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=3000, secret_key="s3cr3t")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "info"

    # Security
    secret_key: str = ""

    # Templates
    template_dir: str | Path = "templates"
    autoescape: bool = True
    trim_blocks: bool = True
    lstrip_blocks: bool = True

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB


@dataclass(frozen=True, slots=True)
class PheryConfig:
    """Dispatcher behaviour switches.

    ``exceptions``
        Raise :class:`~phery.errors.PheryError` on usage and processing
        errors instead of logging them and returning an empty result.
    ``csrf``
        Require a valid ``phery[csrf]`` token on every remote call.
        Needs :class:`~phery.middleware.sessions.SessionMiddleware`.
    ``compress``
        Gzip JSON answers when the client accepts it.
    ``catch_errors``
        Turn exceptions raised by remote functions into an ``exception``
        command instead of letting them reach the app's error handlers.
    ``respond_to_post``
        Remote function names that also answer plain (non-AJAX) form
        posts. Their results are read back with ``Phery.answer_for()``.
    """

    exceptions: bool = False
    csrf: bool = False
    compress: bool = False
    catch_errors: bool = False
    respond_to_post: tuple[str, ...] = ()

