"""Tests for signed-cookie sessions."""

import pytest

from phery.app import App
from phery.errors import ConfigurationError
from phery.middleware.sessions import SessionConfig, SessionMiddleware, get_session
from phery.testing import TestClient


def _make_app() -> App:
    app = App()
    app.add_middleware(SessionMiddleware(SessionConfig(secret_key="test-secret")))

    @app.route("/count")
    def count():
        session = get_session()
        session["visits"] = session.get("visits", 0) + 1
        return str(session["visits"])

    return app


class TestSessionConfig:
    def test_defaults(self) -> None:
        config = SessionConfig(secret_key="s")
        assert config.cookie_name == "phery_session"
        assert config.max_age == 86400
        assert config.httponly is True

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            SessionMiddleware(SessionConfig(secret_key=""))


def test_get_session_outside_request() -> None:
    with pytest.raises(LookupError, match="No active session"):
        get_session()


class TestSessionMiddleware:
    async def test_session_persists_across_requests(self) -> None:
        async with TestClient(_make_app()) as client:
            first = await client.get("/count")
            second = await client.get("/count")
        assert first.text == "1"
        assert second.text == "2"
        assert any(name == "set-cookie" for name, _ in first.headers)

    async def test_tampered_cookie_starts_fresh(self) -> None:
        async with TestClient(_make_app()) as client:
            await client.get("/count")
            response = await client.get("/count", headers={"Cookie": "phery_session=forged"})
        assert response.text == "1"
