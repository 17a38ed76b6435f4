"""Segmentation of a chunk stream into logical turns.

Plain text chunks are emitted one turn per chunk so that text reaches
the caller as soon as it arrives. Once a chunk carries a tool call, all
following chunks are folded into one window until a chunk finishes with
``tool_calls``; the arguments are only released once complete.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from dataclasses import dataclass

from stepchat.completion import ChatCompletion, ChatCompletionChunk
from stepchat.streaming import (
    is_tool_call_chunk,
    is_tool_call_finish,
    merge,
    to_completion,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowState:
    """Accumulator carried between chunks of one stream."""

    window: ChatCompletionChunk | None = None
    inside_tool: bool = False


def step(
    state: WindowState, chunk: ChatCompletionChunk
) -> tuple[WindowState, ChatCompletionChunk | None]:
    """Fold one chunk into the open window.

    Returns the next state and the window's merged chunk if this chunk
    closed it, else ``None``.
    """
    inside_tool = state.inside_tool or is_tool_call_chunk(chunk)
    window = merge(state.window, chunk)
    if inside_tool and not is_tool_call_finish(chunk):
        return WindowState(window=window, inside_tool=True), None
    return WindowState(), window


def _flush(state: WindowState) -> ChatCompletion | None:
    if state.window is None:
        return None
    logger.warning(
        "Stream ended inside an unfinished tool call window "
        f"(id={state.window.id}); emitting it as is"
    )
    return to_completion(state.window)


def segment(chunks: Iterable[ChatCompletionChunk]) -> Iterator[ChatCompletion]:
    """Yield the logical turns of an already-received chunk sequence."""
    state = WindowState()
    for chunk in chunks:
        state, closed = step(state, chunk)
        if closed is not None:
            yield to_completion(closed)
    last = _flush(state)
    if last is not None:
        yield last


async def segment_turns(
    chunks: AsyncIterable[ChatCompletionChunk],
) -> AsyncIterator[ChatCompletion]:
    """Yield logical turns as the chunk stream arrives."""
    state = WindowState()
    async for chunk in chunks:
        state, closed = step(state, chunk)
        if closed is not None:
            yield to_completion(closed)
    last = _flush(state)
    if last is not None:
        yield last
