"""Wire records exchanged with the chat completions endpoint."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from stepchat.message import Message


class FinishReason(Enum):
    UNKNOWN = ""
    STOP = "stop"
    LENGTH = "length"
    SENSITIVE = "sensitive"
    CONTENT_FILTER = "content_filter"
    TOOL_CALLS = "tool_calls"
    NETWORK_ERROR = "network_error"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN

    @property
    def is_content_filtered(self) -> bool:
        return self in (FinishReason.SENSITIVE, FinishReason.CONTENT_FILTER)


class ChatModel(Enum):
    STEP_1 = "step-1"
    STEP_1V = "step-1v"
    STEP_1_32K = "step-1-32k"
    STEP_1V_32K = "step-1v-32k"
    STEP_1_200K = "step-1-200k"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Usage(_Record):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class FunctionDeclaration(_Record):
    name: str
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)


class FunctionTool(_Record):
    """A function the model may call, as declared in a request."""

    type: Literal["function"] = "function"
    function: FunctionDeclaration


class ChunkChoice(_Record):
    index: int | None = None
    delta: Message | None = None
    finish_reason: FinishReason | None = None

    @field_serializer("finish_reason")
    def serialize_finish_reason(self, reason: FinishReason | None, _info):
        return reason.value if reason is not None else None


class ChatCompletionChunk(_Record):
    """One server-sent fragment of a streamed completion."""

    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None
    request_id: str | None = None
    choices: list[ChunkChoice] = Field(default_factory=list)
    usage: Usage | None = None

    @property
    def choice(self) -> ChunkChoice | None:
        return self.choices[0] if self.choices else None


class Choice(_Record):
    index: int | None = None
    message: Message
    finish_reason: FinishReason | None = None

    @field_serializer("finish_reason")
    def serialize_finish_reason(self, reason: FinishReason | None, _info):
        return reason.value if reason is not None else None


class ChatCompletion(_Record):
    """An aggregate completion, or a logical turn rebuilt from chunks."""

    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None
    request_id: str | None = None
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None

    @property
    def choice(self) -> Choice | None:
        return self.choices[0] if self.choices else None

    @property
    def message(self) -> Message | None:
        choice = self.choice
        return choice.message if choice is not None else None

    @property
    def finish_reason(self) -> FinishReason | None:
        choice = self.choice
        return choice.finish_reason if choice is not None else None


class ChatCompletionRequest(_Record):
    request_id: str | None = None
    model: str | None = None
    messages: list[Message] = Field(default_factory=list)
    do_sample: bool | None = None
    stream: bool | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stop: list[str] | None = None
    tools: list[FunctionTool] | None = None
    tool_choice: str | dict[str, Any] | None = None
    user_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
