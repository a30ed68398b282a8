"""Tests for phery.context: request ContextVar and per-request scopes."""

import pytest

from phery.app import App
from phery.context import current_request, current_scope, get_request, request_scope
from phery.dispatcher import Phery
from phery.middleware import PheryMiddleware
from phery.response import Response
from phery.testing import TestClient, assert_commands


class TestRequestVar:
    def test_get_request_raises_outside_context(self) -> None:
        with pytest.raises(LookupError):
            get_request()
        assert current_request() is None


class TestRequestScope:
    def test_nested_scope_restores_outer(self) -> None:
        outer = current_scope()
        with request_scope() as inner:
            assert current_scope() is inner
            assert inner is not outer
        assert current_scope() is outer

    def test_explicit_scope_reused(self) -> None:
        with request_scope() as first:
            r = Response()
        with request_scope(first):
            assert Response.get_response(r.name) is r

    async def test_each_request_gets_fresh_scope(self) -> None:
        phery = Phery()

        @phery.remote()
        def remember(args):
            previous = Response.get_response("kept")
            Response().set_response_name("kept")
            Response.set_global("seen", True)
            return Response("#out").text("again" if previous else "first")

        app = App()
        app.add_middleware(PheryMiddleware(phery))

        async with TestClient(app) as client:
            first = await client.ajax(remote="remember")
            second = await client.ajax(remote="remember")

        assert_commands(first, {"#out": [{"c": "text", "a": ["first"]}]})
        assert_commands(second, {"#out": [{"c": "text", "a": ["first"]}]})
        assert "seen" not in current_scope().globals

    async def test_request_available_in_remote_function(self) -> None:
        phery = Phery()

        @phery.remote()
        def where(args):
            return Response("#out").text(get_request().path)

        app = App()
        app.add_middleware(PheryMiddleware(phery))

        async with TestClient(app) as client:
            response = await client.ajax("/somewhere", remote="where")
        assert_commands(response, {"#out": [{"c": "text", "a": ["/somewhere"]}]})
