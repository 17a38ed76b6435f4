"""Tests for option layering and request building."""

import pytest

from stepchat.config import default_chat_options
from stepchat.errors import InvalidOptionsError, UnresolvedToolError
from stepchat.message import user
from stepchat.options import (
    ChatOptions,
    TOOL_CHOICE_AUTO,
    TOOL_CHOICE_NONE,
    merge_options,
    tool_choice_function,
)
from stepchat.request import RequestBuilder
from stepchat.tools import FunctionRegistry, StaticCatalog, tool

from tests.conftest import lookup, weather


# ---------------------------------------------------------------------------
# merge_options
# ---------------------------------------------------------------------------

class TestMergeOptions:
    def test_runtime_overrides_defaults(self):
        merged = merge_options(
            ChatOptions(model="step-1v", temperature=0.5, max_tokens=100),
            ChatOptions(temperature=0.1),
        )
        assert merged.model == "step-1v"
        assert merged.temperature == 0.1
        assert merged.max_tokens == 100

    def test_missing_runtime_layer_contributes_nothing(self):
        defaults = ChatOptions(model="step-1", top_p=0.8)
        assert merge_options(defaults, None).request_fields() == {
            "model": "step-1", "top_p": 0.8,
        }

    def test_computed_tools_take_precedence(self):
        declared = [weather.declaration()]
        merged = merge_options(
            ChatOptions(tools=declared),
            ChatOptions(tools=declared),
            [lookup.declaration()],
        )
        assert [t.function.name for t in merged.tools] == ["lookup"]

    def test_empty_tool_layer_keeps_declared_tools(self):
        merged = merge_options(ChatOptions(tools=[weather.declaration()]), None, [])
        assert [t.function.name for t in merged.tools] == ["weather"]

    def test_function_fields_are_not_request_fields(self):
        opts = ChatOptions(functions={"lookup"}, function_callbacks=[lookup])
        assert opts.request_fields() == {}


# ---------------------------------------------------------------------------
# RequestBuilder
# ---------------------------------------------------------------------------

@pytest.fixture
def registry():
    return FunctionRegistry()


class TestRequestBuilder:
    def test_defaults_applied(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        request = builder.build([user("hi")])
        assert request.model == "step-1v"
        assert request.do_sample is True
        assert request.stream is False
        assert request.tools is None
        assert request.messages[0].content == "hi"

    def test_stream_flag_is_explicit(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        assert builder.build([user("hi")], stream=True).stream is True

    def test_runtime_options_override(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        request = builder.build(
            [user("hi")], ChatOptions(model="step-1-200k", stop=["END"]),
        )
        assert request.model == "step-1-200k"
        assert request.stop == ["END"]

    def test_dict_options_accepted(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        request = builder.build([user("hi")], {"temperature": 0.2})
        assert request.temperature == 0.2

    def test_malformed_options_fatal(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        with pytest.raises(InvalidOptionsError):
            builder.build([user("hi")], ["not", "options"])
        with pytest.raises(InvalidOptionsError):
            builder.build([user("hi")], {"temperature": "hot"})

    def test_runtime_callbacks_enabled_in_call_scope(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        request, scope = builder.prepare(
            [user("hi")], ChatOptions(function_callbacks=[lookup]),
        )
        assert [t.function.name for t in request.tools] == ["lookup"]
        assert scope.resolve("lookup") is lookup
        assert registry.resolve("lookup") is None

    def test_later_call_cannot_see_earlier_callbacks(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        builder.build([user("hi")], ChatOptions(function_callbacks=[lookup]))

        request, scope = builder.prepare([user("again")])
        assert request.tools is None
        assert scope.resolve("lookup") is None

    def test_call_scope_overrides_registered_tool(self, registry):
        @tool(name="lookup")
        def other_lookup(q: str):
            """Another lookup."""
            return q

        registry.register(lookup)
        builder = RequestBuilder(default_chat_options(), registry)
        _, scope = builder.prepare(
            [user("hi")], ChatOptions(function_callbacks=[other_lookup]),
        )
        assert scope.resolve("lookup") is other_lookup
        assert registry.resolve("lookup") is lookup

    def test_default_callbacks_registered_but_not_enabled(self, registry):
        builder = RequestBuilder(
            ChatOptions(model="m", function_callbacks=[weather]), registry,
        )
        request = builder.build([user("hi")])
        assert request.tools is None
        assert registry.resolve("weather") is weather

        request = builder.build([user("hi")], ChatOptions(functions={"weather"}))
        assert [t.function.name for t in request.tools] == ["weather"]

    def test_union_of_default_and_runtime_functions(self, registry):
        registry.register(lookup)
        registry.register(weather)
        builder = RequestBuilder(
            ChatOptions(model="m", functions={"weather"}), registry,
        )
        request = builder.build([user("hi")], ChatOptions(functions={"lookup"}))
        assert [t.function.name for t in request.tools] == ["lookup", "weather"]
        declared = request.tools[0].function
        assert declared.description == "Look something up."
        assert declared.parameters["required"] == ["q"]

    def test_names_resolved_through_fallback_catalog(self):
        registry = FunctionRegistry(fallback=StaticCatalog([weather]))
        builder = RequestBuilder(ChatOptions(model="m"), registry)
        request = builder.build([user("hi")], ChatOptions(functions={"weather"}))
        assert request.tools[0].function.name == "weather"

    def test_unknown_function_fatal(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        with pytest.raises(UnresolvedToolError, match="missing"):
            builder.build([user("hi")], ChatOptions(functions={"missing"}))

    def test_request_id_and_tool_choice(self, registry):
        builder = RequestBuilder(default_chat_options(), registry)
        request = builder.build(
            [user("hi")],
            ChatOptions(
                function_callbacks=[lookup],
                tool_choice=tool_choice_function("lookup"),
            ),
            request_id="req-1",
        )
        wire = request.to_wire()
        assert wire["request_id"] == "req-1"
        assert wire["tool_choice"] == {
            "type": "function", "function": {"name": "lookup"},
        }
        assert wire["tools"][0]["type"] == "function"
        assert wire["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.parametrize("choice", [TOOL_CHOICE_AUTO, TOOL_CHOICE_NONE])
    def test_tool_choice_modes(self, registry, choice):
        builder = RequestBuilder(default_chat_options(), registry)
        request = builder.build(
            [user("hi")],
            ChatOptions(function_callbacks=[lookup], tool_choice=choice),
        )
        assert request.to_wire()["tool_choice"] == choice
