from stepchat.client import ChatClient, ChatResponse, Generation, Prompt
from stepchat.completion import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatModel,
    FinishReason,
    FunctionTool,
    Usage,
)
from stepchat.errors import (
    InvalidOptionsError,
    StepChatError,
    ToolCallContractError,
    ToolLoopExhaustedError,
    UnresolvedToolError,
)
from stepchat.instrumentation import instrument, uninstrument
from stepchat.message import (
    FunctionInvocation,
    Message,
    MessageRole,
    ToolCallRequest,
    ToolCallType,
)
from stepchat.options import ChatOptions, merge_options
from stepchat.provider import ChatApi, StepFunApi
from stepchat.retry import RetryPolicy, no_retry
from stepchat.runner import FunctionCallRunner, RunResult
from stepchat.segmentation import segment, segment_turns
from stepchat.streaming import merge
from stepchat.tools import FunctionRegistry, StaticCatalog, Tool, ToolCatalog, tool

__all__ = [
    "ChatApi",
    "ChatClient",
    "ChatCompletion",
    "ChatCompletionChunk",
    "ChatCompletionRequest",
    "ChatModel",
    "ChatOptions",
    "ChatResponse",
    "FinishReason",
    "FunctionCallRunner",
    "FunctionInvocation",
    "FunctionRegistry",
    "FunctionTool",
    "Generation",
    "InvalidOptionsError",
    "Message",
    "MessageRole",
    "Prompt",
    "RetryPolicy",
    "RunResult",
    "StaticCatalog",
    "StepChatError",
    "StepFunApi",
    "Tool",
    "ToolCallContractError",
    "ToolCallRequest",
    "ToolCallType",
    "ToolCatalog",
    "ToolLoopExhaustedError",
    "UnresolvedToolError",
    "Usage",
    "instrument",
    "merge",
    "merge_options",
    "no_retry",
    "segment",
    "segment_turns",
    "tool",
    "uninstrument",
]
