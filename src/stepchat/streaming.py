"""Merging of streamed completion chunks.

:func:`merge` folds one :class:`ChatCompletionChunk` into the chunk
accumulated so far. Text deltas are concatenated. Tool-call fragments
are spliced into the call in progress, or open a new call when they
carry an id.
"""

from __future__ import annotations

import uuid

from stepchat.completion import (
    ChatCompletion,
    ChatCompletionChunk,
    Choice,
    ChunkChoice,
    FinishReason,
)
from stepchat.errors import ToolCallContractError
from stepchat.message import (
    FunctionInvocation,
    Message,
    MessageRole,
    ToolCallRequest,
    ToolCallType,
)


def _pick(current, previous):
    return current if current is not None else previous


def _new_call_id() -> str:
    return str(uuid.uuid4())


def _single_tool_call(delta: Message | None) -> ToolCallRequest | None:
    if delta is None or not delta.tool_calls:
        return None
    if len(delta.tool_calls) > 1:
        raise ToolCallContractError(
            "Only one tool call is supported per chunk, "
            f"got {len(delta.tool_calls)}"
        )
    return delta.tool_calls[0]


def _open_call(call: ToolCallRequest) -> ToolCallRequest:
    """Start a new tool call, synthesizing whatever the server omitted."""
    return ToolCallRequest(
        id=call.id if call.id is not None else _new_call_id(),
        type=_pick(call.type, ToolCallType.FUNCTION),
        function=_pick(call.function, FunctionInvocation()),
    )


def _merge_function(
    previous: FunctionInvocation | None, current: FunctionInvocation | None
) -> FunctionInvocation | None:
    if previous is None:
        return current
    if current is None:
        return previous
    arguments = None
    if previous.arguments is not None or current.arguments is not None:
        arguments = (previous.arguments or "") + (current.arguments or "")
    return FunctionInvocation(
        name=_pick(current.name, previous.name),
        arguments=arguments,
    )


def _merge_tool_call(
    previous: ToolCallRequest, current: ToolCallRequest
) -> ToolCallRequest:
    return ToolCallRequest(
        id=_pick(current.id, previous.id),
        type=_pick(current.type, previous.type),
        function=_merge_function(previous.function, current.function),
    )


def _seed_message(delta: Message | None) -> Message:
    delta = delta or Message()
    call = _single_tool_call(delta)
    return delta.model_copy(update={
        "role": _pick(delta.role, MessageRole.ASSISTANT),
        "tool_calls": [_open_call(call)] if call is not None else None,
    })


def _merge_message(previous: Message | None, current: Message | None) -> Message:
    previous = previous or Message()
    current = current or Message()

    content = None
    if previous.content is not None or current.content is not None:
        content = (previous.content or "") + (current.content or "")

    tool_calls = list(previous.tool_calls or [])
    in_progress = tool_calls.pop() if tool_calls else None
    incoming = _single_tool_call(current)
    if incoming is None:
        if in_progress is not None:
            tool_calls.append(in_progress)
    elif incoming.id is not None or in_progress is None:
        # An id marks the start of the next call; close the open one.
        if in_progress is not None:
            tool_calls.append(in_progress)
        tool_calls.append(_open_call(incoming))
    else:
        tool_calls.append(_merge_tool_call(in_progress, incoming))

    return Message(
        content=content,
        role=_pick(current.role, _pick(previous.role, MessageRole.ASSISTANT)),
        name=_pick(current.name, previous.name),
        tool_calls=tool_calls or None,
        tool_call_id=_pick(current.tool_call_id, previous.tool_call_id),
    )


def _merge_choice(
    previous: ChunkChoice | None, current: ChunkChoice | None
) -> ChunkChoice | None:
    if current is None:
        return previous
    if previous is None:
        return current.model_copy(update={"delta": _seed_message(current.delta)})
    return ChunkChoice(
        index=_pick(current.index, previous.index),
        delta=_merge_message(previous.delta, current.delta),
        finish_reason=_pick(current.finish_reason, previous.finish_reason),
    )


def merge(
    previous: ChatCompletionChunk | None, current: ChatCompletionChunk
) -> ChatCompletionChunk:
    """Fold ``current`` into the accumulated chunk ``previous``.

    Scalar fields keep the latest non-null value. Raises
    :class:`ToolCallContractError` if ``current`` carries more than one
    tool call.
    """
    if previous is None:
        choice = _merge_choice(None, current.choice)
        return current.model_copy(update={
            "choices": [choice] if choice is not None else [],
        })

    choice = _merge_choice(previous.choice, current.choice)
    return ChatCompletionChunk(
        id=_pick(current.id, previous.id),
        object=_pick(current.object, previous.object),
        created=_pick(current.created, previous.created),
        model=_pick(current.model, previous.model),
        request_id=_pick(current.request_id, previous.request_id),
        choices=[choice] if choice is not None else [],
        usage=_pick(current.usage, previous.usage),
    )


def is_tool_call_chunk(chunk: ChatCompletionChunk) -> bool:
    """True if the chunk's delta carries any tool call."""
    choice = chunk.choice
    return bool(choice and choice.delta and choice.delta.tool_calls)


def is_tool_call_finish(chunk: ChatCompletionChunk | ChatCompletion) -> bool:
    choice = chunk.choice
    return choice is not None and choice.finish_reason == FinishReason.TOOL_CALLS


def finalize_message(message: Message | None) -> Message:
    message = message or Message()
    return message.model_copy(update={
        "content": message.content or "",
        "role": _pick(message.role, MessageRole.ASSISTANT),
        "tool_calls": [
            _open_call(call) for call in message.tool_calls
        ] if message.tool_calls else None,
    })


def finalize_completion(completion: ChatCompletion) -> ChatCompletion:
    """Finalize every choice of an aggregate (non-streamed) reply."""
    return completion.model_copy(update={
        "choices": [
            c.model_copy(update={"message": finalize_message(c.message)})
            for c in completion.choices
        ],
    })


def to_completion(chunk: ChatCompletionChunk) -> ChatCompletion:
    """Turn an accumulated chunk into a finalized logical turn."""
    return ChatCompletion(
        id=chunk.id,
        object="chat.completion",
        created=chunk.created,
        model=chunk.model,
        request_id=chunk.request_id,
        choices=[
            Choice(
                index=c.index,
                message=finalize_message(c.delta),
                finish_reason=c.finish_reason,
            )
            for c in chunk.choices
        ],
        usage=chunk.usage,
    )
