import json

import pytest

from stepchat.completion import (
    ChatCompletion,
    ChatCompletionChunk,
    Choice,
    ChunkChoice,
    FinishReason,
    Usage,
)
from stepchat.message import (
    FunctionInvocation,
    Message,
    MessageRole,
    ToolCallRequest,
)
from stepchat.provider import ChatApi
from stepchat.retry import no_retry
from stepchat.tools import tool


# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------

class MockApi(ChatApi):
    """Transport that replays queued completions and chunk scripts.

    No network calls. Every request is recorded in ``call_log``.
    """

    def __init__(self):
        self.responses: list[ChatCompletion | None] = []
        self.streams: list[list[ChatCompletionChunk]] = []
        self.call_log: list = []

    async def complete(self, request):
        self.call_log.append(request)
        return self.responses.pop(0)

    async def stream(self, request):
        self.call_log.append(request)
        chunks = self.streams.pop(0)

        async def _iter():
            for chunk in chunks:
                yield chunk

        return _iter()


# ---------------------------------------------------------------------------
# Completion builders
# ---------------------------------------------------------------------------

def make_text_completion(
    content: str, usage: Usage | None = None
) -> ChatCompletion:
    return ChatCompletion(
        id="cmpl-text",
        object="chat.completion",
        model="step-1v",
        choices=[Choice(
            index=0,
            message=Message(role=MessageRole.ASSISTANT, content=content),
            finish_reason=FinishReason.STOP,
        )],
        usage=usage,
    )


def make_tool_call_completion(
    calls: list[tuple[str, dict, str]], content: str = "",
) -> ChatCompletion:
    """Completion asking for tools. Each call is ``(name, args, call_id)``."""
    return ChatCompletion(
        id="cmpl-tools",
        object="chat.completion",
        model="step-1v",
        choices=[Choice(
            index=0,
            message=Message(
                role=MessageRole.ASSISTANT,
                content=content,
                tool_calls=[
                    ToolCallRequest(
                        id=call_id,
                        function=FunctionInvocation(
                            name=name, arguments=json.dumps(args),
                        ),
                    )
                    for name, args, call_id in calls
                ],
            ),
            finish_reason=FinishReason.TOOL_CALLS,
        )],
    )


# ---------------------------------------------------------------------------
# Chunk builders
# ---------------------------------------------------------------------------

def text_chunk(
    content: str | None,
    role: MessageRole | None = None,
    finish: FinishReason | None = None,
    chunk_id: str = "chunk-1",
) -> ChatCompletionChunk:
    return ChatCompletionChunk(
        id=chunk_id,
        object="chat.completion.chunk",
        created=1700000000,
        model="step-1v",
        choices=[ChunkChoice(
            index=0,
            delta=Message(content=content, role=role),
            finish_reason=finish,
        )],
    )


def tool_chunk(
    arguments: str | None,
    call_id: str | None = None,
    name: str | None = None,
    finish: FinishReason | None = None,
    chunk_id: str = "chunk-1",
) -> ChatCompletionChunk:
    return ChatCompletionChunk(
        id=chunk_id,
        object="chat.completion.chunk",
        created=1700000000,
        model="step-1v",
        choices=[ChunkChoice(
            index=0,
            delta=Message(tool_calls=[ToolCallRequest(
                id=call_id,
                function=FunctionInvocation(name=name, arguments=arguments),
            )]),
            finish_reason=finish,
        )],
    )


def finish_chunk(
    finish: FinishReason, chunk_id: str = "chunk-1"
) -> ChatCompletionChunk:
    return ChatCompletionChunk(
        id=chunk_id,
        choices=[ChunkChoice(index=0, delta=Message(), finish_reason=finish)],
    )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@tool
def lookup(q: str):
    """Look something up."""
    return f"result for {q}"


@tool
def weather(city: str):
    """Current weather for a city."""
    return {"city": city, "temperature": 21}


@pytest.fixture
def mock_api():
    return MockApi()


@pytest.fixture
def retry():
    return no_retry
