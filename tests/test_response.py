"""Tests for phery.response: command accumulation, merging, persistence."""

import json
from dataclasses import dataclass

import pytest

from phery.commands import Opcode
from phery.context import request_scope, request_var
from phery.errors import RestoreError
from phery.function import JSFunction
from phery.http.request import Request
from phery.response import Response, merge_command_maps


def _request(path: str = "/page", host: str = "example.com") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [(b"host", host.encode())],
        "query_string": b"",
    }

    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    return Request.from_asgi(scope, receive)


class TestSelectorTargeting:
    def test_commands_stick_to_selector(self) -> None:
        r = Response("#out").text("a").html("<b>b</b>")
        assert r.render() == (
            '{"#out":[{"c":"text","a":["a"]},{"c":"html","a":["<b>b</b>"]}]}'
        )

    def test_global_operation_clears_selector(self) -> None:
        r = Response("#out").text("a").alert("x").op("fadeIn")
        assert r.selector is None
        assert r.render() == '{"#out":[{"c":"text","a":["a"]}],"0":{"c":1,"a":["x"]}}'

    def test_global_commands_take_increasing_keys(self) -> None:
        r = Response().alert("a").alert("b")
        assert r.flatten() == {0: {"c": 1, "a": ["a"]}, 1: {"c": 1, "a": ["b"]}}

    def test_jquery_switches_target(self) -> None:
        r = Response("#a").text("1").jquery("#b").text("2")
        assert list(r.flatten()) == ["#a", "#b"]

    def test_explicit_selector_argument(self) -> None:
        r = Response("#a").html("x", "#other")
        assert r.flatten() == {"#other": [{"c": "html", "a": ["x"]}]}
        assert r.selector == "#a"

    def test_this_and_path(self) -> None:
        r = Response().this().op("hide")
        assert r.flatten() == {"~": [{"c": "hide", "a": []}]}

        r = Response().path(["window", "app"]).op("start")
        assert r.flatten() == {
            "+": [{"c": ["window", "app"], "a": []}, {"c": "start", "a": []}]
        }


class TestOperations:
    def test_op_wraps_args(self) -> None:
        r = Response("#x").op("css", "color", "red")
        assert r.flatten() == {"#x": [{"c": "css", "a": [["color", "red"]]}]}

    def test_op_typecasts_digit_strings(self) -> None:
        r = Response("#x").op("animate", "300")
        assert r.flatten() == {"#x": [{"c": "animate", "a": [[300]]}]}

    def test_op_without_selector_is_dropped(self) -> None:
        assert Response().op("fadeIn", 200).render() == "{}"

    def test_attr_and_clear(self) -> None:
        r = Response("#a").attr("href", "/x").clear("title")
        assert r.flatten() == {
            "#a": [{"c": "attr", "a": ["href", "/x"]}, {"c": "attr", "a": ["title", ""]}]
        }

    def test_list_content_joined_with_newlines(self) -> None:
        r = Response("#a").append(["one", "two"])
        assert r.flatten() == {"#a": [{"c": "append", "a": ["one\ntwo"]}]}

    def test_remove(self) -> None:
        assert Response("#a").remove().flatten() == {"#a": [{"c": "remove", "a": []}]}

    def test_call_and_apply(self) -> None:
        r = Response().call("refresh", 1, "a").apply(["app", "go"], [2])
        assert r.flatten() == {
            0: {"c": 2, "a": [["refresh"], [1, "a"]]},
            1: {"c": 2, "a": [["app", "go"], [2]]},
        }

    def test_script_json_exception(self) -> None:
        r = Response().script(["a();", "b();"]).json({"a": 1}).exception("boom")
        assert r.flatten() == {
            0: {"c": 3, "a": ["a();\nb();"]},
            1: {"c": 4, "a": ['{"a": 1}']},
            2: {"c": 7, "a": ["boom", None]},
        }

    def test_render_view_defaults_data(self) -> None:
        r = Response().render_view("<p>hi</p>")
        assert r.flatten() == {0: {"c": Opcode.RENDER_VIEW, "a": ["<p>hi</p>", []]}}

    def test_set_and_unset_var(self) -> None:
        r = Response().set_var("count", "5").unset_var(["app", "count"])
        assert r.flatten() == {
            0: {"c": 9, "a": [["count"], [5]]},
            1: {"c": 9, "a": [["app", "count"]]},
        }

    def test_console_output(self) -> None:
        r = Response().print_vars({"a": 1}).dump_vars(1, "x")
        assert r.flatten() == {
            0: {"c": 6, "a": [["{'a': 1}"]]},
            1: {"c": 6, "a": [[1], ["x"]]},
        }

    def test_phery_element_call(self) -> None:
        r = Response().phery("remote", "again").phery(["data", "x"])
        assert r.flatten() == {
            0: {"c": 10, "a": ["remote", ["again"]]},
            1: {"c": 10, "a": [["data", "x"]]},
        }

    def test_phery_remote(self) -> None:
        r = Response().phery_remote("other", {"x": 1})
        assert r.flatten() == {"-": [{"c": 255, "a": ["other", {"x": 1}, [], True]}]}


class TestRedirect:
    def test_outside_request_keeps_url(self) -> None:
        r = Response().redirect("/home")
        assert r.flatten() == {0: {"c": 8, "a": ["/home", False]}}

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("/home", "http://example.com/home"),
            ("?page=2", "http://example.com/page?page=2"),
            ("other", "http://example.com/other"),
            ("https://elsewhere.org/x", "https://elsewhere.org/x"),
        ],
    )
    def test_relative_urls_become_absolute(self, url: str, expected: str) -> None:
        token = request_var.set(_request())
        try:
            r = Response().redirect(url)
        finally:
            request_var.reset(token)
        assert r.flatten()[0]["a"] == [expected, False]

    def test_view_redirect_resets_commands(self) -> None:
        r = Response("#a").text("x").alert("y").redirect("/v", "#container")
        assert r.flatten() == {0: {"c": 8, "a": ["/v", "#container"]}}


class TestTypecast:
    def test_digit_strings_become_int(self) -> None:
        assert Response.typecast("42") == 42
        assert Response.typecast("0") == 0

    def test_other_strings_unchanged(self) -> None:
        assert Response.typecast("4a") == "4a"
        assert Response.typecast("") == ""
        assert Response.typecast("-3") == "-3"

    def test_scalars_unchanged(self) -> None:
        assert Response.typecast(None) is None
        assert Response.typecast(3.5) == 3.5
        assert Response.typecast(True) is True

    def test_objects_stringified(self) -> None:
        class Named:
            def __str__(self) -> str:
                return "named"

        @dataclass
        class Point:
            x: int
            y: int

        assert Response.typecast(Named()) == "named"
        assert Response.typecast(Point(1, 2)) == {"x": 1, "y": 2}

    def test_nested_walks_containers(self) -> None:
        assert Response.typecast({"a": ["1", "b"]}, True, True) == {"a": [1, "b"]}

    def test_nested_depth_limit(self) -> None:
        assert Response.typecast([["5"]], True, True) == [[5]]
        assert Response.typecast([[[["5"]]]], True, True) == [[[["5"]]]]

    def test_without_stringify(self) -> None:
        assert Response.typecast("42", False) == "42"

    def test_cyclic_objects_are_cut_off(self) -> None:
        class Node:
            def __init__(self) -> None:
                self.parent = None
                self.children = []

        parent, child = Node(), Node()
        child.parent = parent
        parent.children.append(child)

        r = Response("#o").html(parent)
        cut = {"parent": None, "children": [{"parent": None, "children": None}]}
        assert r.flatten() == {"#o": [{"c": "html", "a": [cut]}]}
        assert Response.typecast(parent) == {
            "parent": None,
            "children": [{"parent": {"parent": None, "children": None}, "children": []}],
        }


class TestNesting:
    def test_response_argument_becomes_pr(self) -> None:
        inner = Response("#b").text("x")
        r = Response("#a").html(inner)
        assert r.flatten() == {
            "#a": [{"c": "html", "a": [{"PR": {"#b": [{"c": "text", "a": ["x"]}]}}]}]
        }

    def test_function_argument_becomes_pf(self) -> None:
        fn = JSFunction("alert(:m)", {":m": "'hi'"})
        r = Response("#btn").op("on", "click", fn)
        assert r.render() == '{"#btn":[{"c":"on","a":[["click",{"PF":"alert(\'hi\')"}]]}]}'

    def test_constructor_initializes_new_element(self) -> None:
        r = Response("<div/>", {"text": "hello", "addClass": "note"})
        assert r.flatten() == {
            "<div/>": [{"c": "text", "a": ["hello"]}, {"c": "addClass", "a": [["note"]]}]
        }


class TestComposition:
    def test_merge_concatenates_selector_lists(self) -> None:
        a = Response("#a").text("1")
        b = Response("#a").text("2").alert("x")
        a.merge(b)
        assert a.flatten() == {
            "#a": [{"c": "text", "a": ["1"]}, {"c": "text", "a": ["2"]}],
            0: {"c": 1, "a": ["x"]},
        }

    def test_merge_is_a_snapshot(self) -> None:
        a = Response("#a").text("1")
        b = Response("#b").text("2")
        a.merge(b)
        b.text("3")
        assert a.flatten()["#b"] == [{"c": "text", "a": ["2"]}]

    def test_merge_renumbers_integer_keys(self) -> None:
        a = Response().alert("one")
        b = Response().alert("two")
        a.merge(b.name)
        assert a.flatten() == {0: {"c": 1, "a": ["one"]}, 1: {"c": 1, "a": ["two"]}}

    def test_unmerge(self) -> None:
        a = Response("#a").text("1")
        b = Response("#b").text("2")
        a.merge(b).unmerge(b.name)
        assert a.merged == ()
        assert "#b" not in a.flatten()

    def test_get_merged_returns_live_builder(self) -> None:
        a = Response()
        b = Response("#b").text("2")
        a.merge(b)
        assert a.get_merged(b.name) is b
        assert a.get_merged("missing") is None

    def test_merge_command_maps(self) -> None:
        merged = merge_command_maps({"#a": [1], 5: "x"}, {"#a": [2], 0: "y"})
        assert merged == {"#a": [1, 2], 0: "x", 1: "y"}

    def test_reset_and_remove_selector(self) -> None:
        assert Response("#a").text("x").reset().render() == "{}"
        r = Response("#a").text("x").jquery("#b").text("y").remove_selector("#a")
        assert list(r.flatten()) == ["#b"]

    def test_empty_selector_placeholder(self) -> None:
        assert Response("#empty").render() == '{"#empty":[]}'
        assert Response().render() == "{}"


class TestRegistryAndGlobals:
    def test_builders_registered_by_name(self) -> None:
        r = Response()
        assert Response.get_response(r.name) is r
        old = r.name
        r.set_response_name("custom")
        assert Response.get_response("custom") is r
        assert Response.get_response(old) is None

    def test_scopes_are_isolated(self) -> None:
        with request_scope():
            inner = Response()
            Response.set_global("user", "ann")
        assert Response.get_response(inner.name) is None
        assert Response()["user"] is None

    def test_property_bag_falls_back_to_globals(self) -> None:
        r = Response()
        r["local"] = 1
        Response.set_global({"shared": 2})
        assert r["local"] == 1
        assert r["shared"] == 2
        assert "shared" in r
        assert r["missing"] is None
        Response.unset_global("shared")
        assert "shared" not in r
        del r["local"]
        assert list(r) == []


class TestPersistence:
    def test_round_trip_is_identical(self) -> None:
        r = Response("#a").text("x").alert("y")
        r["k"] = "v"
        r.merge(Response("#b").html("z"))
        serialized = r.serialize()

        restored = Response.unserialize(serialized)
        assert restored.serialize() == serialized
        assert restored.name == r.name
        assert restored["k"] == "v"
        assert restored.render() == r.render()

    def test_restored_builder_continues_numbering(self) -> None:
        restored = Response.unserialize(Response().alert("a").serialize())
        restored.alert("b")
        assert list(restored.flatten()) == [0, 1]

    def test_serialized_shape(self) -> None:
        data = json.loads(Response("#a").serialize())
        assert set(data) == {"data", "this", "name", "merged", "selector"}
        assert data["selector"] == "#a"

    def test_digit_selector_survives_round_trip(self) -> None:
        r = Response("123").text("x").alert("y")
        restored = Response.unserialize(r.serialize())
        assert restored.render() == r.render()
        assert restored.render() == '{"123":[{"c":"text","a":["x"]}],"0":{"c":1,"a":["y"]}}'

    def test_unhashable_selector_rejected(self) -> None:
        payload = '{"data":{},"this":{},"name":"x","merged":{},"selector":{"a":1}}'
        with pytest.raises(RestoreError, match="Invalid selector"):
            Response.unserialize(payload)

    @pytest.mark.parametrize("payload", ["not json", '{"data":{}}', "[1]", '{"data":{},"this":{},"name":"x","merged":5}'])
    def test_invalid_input_raises(self, payload: str) -> None:
        with pytest.raises(RestoreError):
            Response.unserialize(payload)
