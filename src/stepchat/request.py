import logging
from collections.abc import Mapping

from pydantic import ValidationError

from stepchat.completion import ChatCompletionRequest, FunctionTool
from stepchat.errors import InvalidOptionsError, UnresolvedToolError
from stepchat.message import Message
from stepchat.options import ChatOptions, merge_options
from stepchat.tools import FunctionRegistry, ToolCatalog

logger = logging.getLogger(__name__)


def coerce_options(options) -> ChatOptions | None:
    """Accept ChatOptions, a mapping of its fields, or None."""
    if options is None or isinstance(options, ChatOptions):
        return options
    if isinstance(options, Mapping):
        try:
            return ChatOptions.model_validate(dict(options))
        except ValidationError as e:
            raise InvalidOptionsError(f"Invalid chat options: {e}") from e
    raise InvalidOptionsError(
        f"Prompt options are not of type ChatOptions: {type(options).__name__}"
    )


class RequestBuilder:
    """Builds wire requests from a conversation and layered options.

    Callbacks in the default options are registered once, if absent, and
    stay disabled unless named in ``functions``. Callbacks passed with a
    single call live in a scope for that call only and are enabled.

    Args:
        default_options: Lowest-priority option layer.
        registry: Register the functions named in options resolve against.
    """

    def __init__(self, default_options: ChatOptions | None,
                 registry: FunctionRegistry):
        self.default_options = default_options
        self.registry = registry
        if default_options is not None:
            for callback in default_options.function_callbacks or []:
                registry.register_if_absent(callback)

    def _enabled_functions(self, runtime: ChatOptions | None) -> set[str]:
        enabled = set()
        if self.default_options is not None:
            enabled.update(self.default_options.functions or ())
        if runtime is not None:
            enabled.update(t.name for t in runtime.function_callbacks or [])
            enabled.update(runtime.functions or ())
        return enabled

    def resolve_tools(
        self, names: set[str], catalog: ToolCatalog | None = None
    ) -> list[FunctionTool]:
        catalog = self.registry if catalog is None else catalog
        declarations = []
        for name in sorted(names):
            found = catalog.resolve(name)
            if found is None:
                raise UnresolvedToolError(name)
            declarations.append(found.declaration())
        return declarations

    def prepare(
        self,
        messages: list[Message],
        options=None,
        stream: bool = False,
        request_id: str | None = None,
    ) -> tuple[ChatCompletionRequest, FunctionRegistry]:
        """Build the request and the tool scope its rounds resolve against."""
        runtime = coerce_options(options)
        scope = self.registry.scoped(
            runtime.function_callbacks if runtime is not None else None
        )
        names = self._enabled_functions(runtime)
        tools = self.resolve_tools(names, scope) if names else None

        merged = merge_options(self.default_options, runtime, tools)
        logger.debug(
            f"Built request for model={merged.model} with "
            f"{len(messages)} messages, functions={sorted(names)}, stream={stream}"
        )
        request = ChatCompletionRequest(
            request_id=request_id,
            messages=[to_wire_message(m) for m in messages],
            stream=stream,
            **merged.request_fields(),
        )
        return request, scope

    def build(
        self,
        messages: list[Message],
        options=None,
        stream: bool = False,
        request_id: str | None = None,
    ) -> ChatCompletionRequest:
        request, _ = self.prepare(messages, options, stream, request_id)
        return request


def to_wire_message(message: Message) -> Message:
    if isinstance(message, Message):
        return message
    if isinstance(message, Mapping):
        return Message.model_validate(dict(message))
    raise TypeError(f"Cannot send {type(message).__name__} as a chat message")
