import json
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_serializer


class MessageRole(Enum):
    UNKNOWN = ""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class ToolCallType(Enum):
    UNKNOWN = ""
    FUNCTION = "function"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class FunctionInvocation(BaseModel):
    """Function name plus its JSON-encoded arguments.

    While streaming, ``arguments`` is a concatenation of fragments and
    is only parseable once the owning tool call is finalized.
    """

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    arguments: str | None = None

    def parsed_arguments(self) -> dict:
        if not self.arguments:
            return {}
        return json.loads(self.arguments)


class ToolCallRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    type: ToolCallType | None = None
    function: FunctionInvocation | None = None

    @field_serializer("type")
    def serialize_type(self, type: ToolCallType | None, _info) -> str | None:
        return type.value if type is not None else None


class Message(BaseModel):
    """A conversation message, either complete or a streamed delta.

    A delta may leave every field unset. A finalized message always has
    a role, a content string and, for each tool call, an id.
    """

    model_config = ConfigDict(frozen=True)

    content: str | None = None
    role: MessageRole | None = None
    name: str | None = None
    tool_calls: list[ToolCallRequest] | None = None
    tool_call_id: str | None = None

    @field_serializer("role")
    def serialize_role(self, role: MessageRole | None, _info) -> str | None:
        return role.value if role is not None else None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


def system(content: str) -> Message:
    return Message(role=MessageRole.SYSTEM, content=content)


def user(content: str) -> Message:
    return Message(role=MessageRole.USER, content=content)


def assistant(content: str) -> Message:
    return Message(role=MessageRole.ASSISTANT, content=content)


def tool_result(
    content: str, name: str, tool_call_id: str | None = None
) -> Message:
    """Message answering a tool call, tagged with the function name."""
    return Message(
        role=MessageRole.TOOL,
        content=content,
        name=name,
        tool_call_id=tool_call_id,
    )
