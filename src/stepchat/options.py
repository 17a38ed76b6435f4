"""Chat options and the layered merge that resolves them per request.

Every field is optional; ``None`` means "inherit from a lower layer".
Precedence, lowest first: library defaults, per-call options, then the
tool declarations computed for the call.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stepchat.completion import FunctionTool
from stepchat.tools import Tool

TOOL_CHOICE_AUTO = "auto"
TOOL_CHOICE_NONE = "none"

# Fields copied onto the wire request, in declaration order.
REQUEST_FIELDS = (
    "model",
    "max_tokens",
    "do_sample",
    "temperature",
    "top_p",
    "stop",
    "tools",
    "tool_choice",
    "user_id",
)


def tool_choice_function(name: str) -> dict[str, Any]:
    """Force the model to call the named function."""
    return {"type": "function", "function": {"name": name}}


class ChatOptions(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    model: str | None = None
    max_tokens: int | None = None
    do_sample: bool | None = None
    temperature: float | None = None
    top_p: float | None = None
    stop: list[str] | None = None
    tools: list[FunctionTool] | None = None
    tool_choice: str | dict[str, Any] | None = None
    user_id: str | None = None

    # Names of registered functions to expose for the call.
    functions: set[str] | None = None
    # Tools to register with the client.
    function_callbacks: list[Tool] | None = Field(default=None, exclude=True)

    def request_fields(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in REQUEST_FIELDS
            if getattr(self, name) is not None
        }


def merge_options(
    defaults: ChatOptions | None,
    runtime: ChatOptions | None = None,
    tools: list[FunctionTool] | None = None,
) -> ChatOptions:
    """Overlay the three option layers into one.

    A field set in a higher layer replaces the same field below it;
    unset fields are inherited. ``tools`` replaces any declared tool
    list only when non-empty.
    """
    merged: dict[str, Any] = {}
    for layer in (defaults, runtime):
        if layer is not None:
            merged.update(layer.request_fields())
    if tools:
        merged["tools"] = list(tools)
    return ChatOptions(**merged)
