"""Tests for phery.app: registration, ASGI pipeline, negotiation, and errors."""

import pytest

from phery.app import App
from phery.config import AppConfig
from phery.dispatcher import Phery
from phery.http.request import Request
from phery.http.response import HTTPResponse, Redirect
from phery.middleware import PheryMiddleware
from phery.response import Response
from phery.templating.integration import render
from phery.templating.returns import Fragment, InlineTemplate, Template
from phery.testing import TestClient, assert_command, assert_commands


class TestAppRegistration:
    def test_route_decorator(self) -> None:
        app = App()

        @app.route("/", methods=["GET", "POST"])
        def index():
            return "hello"

        assert len(app._pending_routes) == 1
        assert app._pending_routes[0].methods == ["GET", "POST"]

    def test_error_and_filters(self) -> None:
        app = App()

        @app.error(404)
        def not_found():
            return "Not found"

        @app.template_filter("shout")
        def upper(value: str) -> str:
            return value.upper()

        assert 404 in app._error_handlers
        assert "shout" in app._template_filters

    async def test_frozen_app_rejects_changes(self) -> None:
        app = App()
        async with TestClient(app):
            pass
        with pytest.raises(RuntimeError, match="Cannot modify"):
            app.add_middleware(lambda request, next: next(request))


class TestRouting:
    async def test_path_params_converted(self) -> None:
        app = App()

        @app.route("/items/{item_id:int}")
        def item(item_id: int):
            return {"id": item_id, "type": type(item_id).__name__}

        async with TestClient(app) as client:
            response = await client.get("/items/42")
        assert response.status == 200
        assert response.text == '{"id": 42, "type": "int"}'

    async def test_request_injected(self) -> None:
        app = App()

        @app.route("/whoami")
        def whoami(request: Request):
            return f"{request.method} {request.url}"

        async with TestClient(app) as client:
            response = await client.get("/whoami?x=1")
        assert response.text == "GET /whoami?x=1"

    async def test_not_found_and_method_not_allowed(self) -> None:
        app = App()

        @app.route("/only-get")
        def only_get():
            return "ok"

        async with TestClient(app) as client:
            missing = await client.get("/nope")
            wrong = await client.post("/only-get")
        assert missing.status == 404
        assert wrong.status == 405
        assert wrong.header("allow") == "GET"

    async def test_remote_call_to_missing_route_gets_command(self) -> None:
        async with TestClient(App()) as client:
            response = await client.ajax("/nowhere", remote="x")
        assert response.status == 404
        assert_command(response, "0", 7, ["No route matches POST '/nowhere'", {"code": 404}])


class TestNegotiation:
    async def test_return_types(self) -> None:
        app = App()

        @app.route("/redirect")
        def go():
            return Redirect("/target")

        @app.route("/created")
        def created():
            return "made", 201

        @app.route("/raw")
        def raw():
            return HTTPResponse(body="raw", content_type="text/plain")

        @app.route("/commands")
        def builder():
            return Response("#a").text("b")

        @app.route("/inline")
        def inline():
            return InlineTemplate("<p>{{ name }}</p>", name="<Ann>")

        async with TestClient(app) as client:
            redirect = await client.get("/redirect")
            made = await client.get("/created")
            raw_response = await client.get("/raw")
            commands = await client.get("/commands")
            inline_response = await client.get("/inline")

        assert redirect.status == 302
        assert redirect.header("location") == "/target"
        assert (made.status, made.text) == (201, "made")
        assert raw_response.content_type == "text/plain"
        assert_commands(commands, {"#a": [{"c": "text", "a": ["b"]}]})
        assert inline_response.text == "<p>&lt;Ann&gt;</p>"


class TestErrorHandlers:
    async def test_custom_404(self) -> None:
        app = App()

        @app.error(404)
        def not_found(request):
            return f"nothing at {request.path}"

        async with TestClient(app) as client:
            response = await client.get("/missing")
        assert response.status == 404
        assert response.text == "nothing at /missing"

    async def test_internal_error_plain(self) -> None:
        app = App()

        @app.route("/boom")
        def boom():
            raise RuntimeError("kaput")

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert response.status == 500
        assert response.text == "Internal Server Error"

    async def test_internal_error_debug_shows_traceback(self) -> None:
        app = App(AppConfig(debug=True))

        @app.route("/boom")
        def boom():
            raise RuntimeError("kaput")

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert "RuntimeError: kaput" in response.text


class TestTemplates:
    async def test_helpers_available_in_templates(self, tmp_path) -> None:
        (tmp_path / "page.html").write_text(
            "{{ link_to('Hi', 'greet', {'args': {'name': 'Ann'}}) }}"
            "{% block list %}<ul>{{ items|length }}</ul>{% endblock %}"
        )
        phery = Phery()

        @phery.remote()
        def greet(args):
            html = render(Fragment("page.html", "list", items=[1, 2]))
            return Response("#out").html(html)

        app = App(AppConfig(template_dir=tmp_path), phery=phery)
        app.add_middleware(PheryMiddleware(phery))

        @app.route("/", methods=["GET", "POST"])
        def index():
            return Template("page.html", items=[])

        async with TestClient(app) as client:
            page = await client.get("/")
            answer = await client.ajax(remote="greet", args={"name": "Ann"})

        assert page.text.startswith('<a data-args.phery="{&quot;name&quot;:&quot;Ann&quot;}"')
        assert 'data-remote="greet" >Hi</a>' in page.text
        assert_command(answer, "#out", "html", ["<ul>2</ul>"])


class TestLifespan:
    async def test_startup_and_shutdown_hooks(self) -> None:
        app = App()
        events = []

        @app.on_startup
        async def start():
            events.append("start")

        @app.on_shutdown
        def stop():
            events.append("stop")

        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)
        assert events == ["start", "stop"]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]


async def test_end_to_end_greet() -> None:
    phery = Phery()

    @phery.remote()
    def greet(args):
        return Response.factory("#out").text(f"hi {args['name']}")

    app = App(phery=phery)
    app.add_middleware(PheryMiddleware(phery))

    async with TestClient(app) as client:
        response = await client.ajax(remote="greet", args={"name": "Ann"})
    assert_commands(response, {"#out": [{"c": "text", "a": ["hi Ann"]}]})
