import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from stepchat.completion import ChatCompletion, ChatCompletionRequest
from stepchat.config import DEFAULT_MAX_ROUNDS
from stepchat.errors import ToolLoopExhaustedError, UnresolvedToolError
from stepchat.instrumentation import (
    chat_span,
    record_error,
    record_usage,
    tool_span,
)
from stepchat.message import Message, ToolCallRequest, tool_result
from stepchat.provider import ChatApi
from stepchat.retry import RetryExecutor, RetryPolicy
from stepchat.segmentation import segment_turns
from stepchat.streaming import finalize_completion, is_tool_call_finish
from stepchat.tools import Tool, ToolCatalog

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one exchange with the model.

    ``completion`` is the final (non tool-call) turn, or ``None`` when
    the model returned nothing. ``history`` is the conversation that
    produced it, ending with the final assistant message; it is empty
    for streamed turns that needed no tool round.
    """

    completion: ChatCompletion | None
    history: list[Message] = field(default_factory=list)
    rounds: int = 1


def is_tool_call_turn(turn: ChatCompletion) -> bool:
    message = turn.message
    return (
        is_tool_call_finish(turn)
        and message is not None
        and message.has_tool_calls
    )


class FunctionCallRunner:
    """Runs the tool-calling loop against a chat transport.

    Each round sends the request to the model. If the reply asks for
    tools, every call is dispatched in order, its result is appended to
    the conversation as a tool message, and a new non-streaming round
    is issued. The loop ends when the model answers without tools.

    Args:
        api: Transport used for every round.
        catalog: Resolves requested function names to tools.
        retry: Retry executor applied to each transport call.
        max_rounds: Model rounds allowed before
            :class:`ToolLoopExhaustedError` is raised.
    """

    def __init__(
        self,
        api: ChatApi,
        catalog: ToolCatalog,
        retry: RetryExecutor | None = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
    ):
        self.api = api
        self.catalog = catalog
        self.retry = retry or RetryPolicy()
        self.max_rounds = max_rounds

    async def run(
        self,
        request: ChatCompletionRequest,
        rounds_used: int = 0,
        catalog: ToolCatalog | None = None,
    ) -> RunResult:
        """Run rounds until the model answers without tool calls.

        ``catalog`` overrides the runner's catalog for this exchange.
        """
        rounds = rounds_used
        while True:
            self._check_budget(rounds)
            rounds += 1
            completion = await self._complete(request, rounds)
            if completion is not None:
                completion = finalize_completion(completion)
            message = completion.message if completion is not None else None
            if message is None:
                logger.warning(f"Round {rounds} returned no choices")
                return RunResult(completion, list(request.messages), rounds)
            if not message.has_tool_calls:
                return RunResult(
                    completion, [*request.messages, message], rounds,
                )
            # No round is left to answer the results.
            self._check_budget(rounds)
            request = await self.dispatch(request, message, catalog)

    async def iter(
        self,
        request: ChatCompletionRequest,
        catalog: ToolCatalog | None = None,
    ) -> AsyncIterator[RunResult]:
        """Stream the first round, resolving tool-call turns in place.

        Text turns are yielded as they arrive. A turn that finishes with
        ``tool_calls`` is dispatched and replaced by the result of the
        non-streaming rounds that follow it. The round's span stays open
        until the stream is drained.
        """
        async with chat_span(request.model, True, 1) as span:
            try:
                chunks = await self.retry(lambda: self.api.stream(request))
                async for turn in segment_turns(chunks):
                    if not is_tool_call_turn(turn):
                        yield RunResult(turn)
                        continue
                    self._check_budget(1)
                    next_request = await self.dispatch(
                        request, turn.message, catalog,
                    )
                    yield await self.run(
                        next_request, rounds_used=1, catalog=catalog,
                    )
            except Exception as e:
                record_error(span, e)
                raise

    async def dispatch(
        self,
        request: ChatCompletionRequest,
        message: Message,
        catalog: ToolCatalog | None = None,
    ) -> ChatCompletionRequest:
        """Run every tool call in ``message`` and build the next request.

        All names are resolved before anything runs, so an unknown
        function aborts the round with no tool executed.
        """
        catalog = self.catalog if catalog is None else catalog
        resolved: list[tuple[ToolCallRequest, Tool]] = []
        for call in message.tool_calls or []:
            name = call.function.name if call.function is not None else None
            found = catalog.resolve(name) if name else None
            if found is None:
                raise UnresolvedToolError(name or "<unnamed>")
            resolved.append((call, found))

        history = [*request.messages, message]
        for call, found in resolved:
            output = await self._invoke(call, found)
            history.append(tool_result(
                output, name=call.function.name, tool_call_id=call.id,
            ))

        return request.model_copy(update={"messages": history, "stream": False})

    def _check_budget(self, rounds_used: int) -> None:
        if rounds_used >= self.max_rounds:
            raise ToolLoopExhaustedError(self.max_rounds)

    async def _complete(
        self, request: ChatCompletionRequest, round_number: int
    ) -> ChatCompletion | None:
        logger.info(
            f"Round {round_number}: sending {len(request.messages)} "
            f"messages to {request.model}"
        )
        async with chat_span(request.model, False, round_number) as span:
            try:
                completion = await self.retry(lambda: self.api.complete(request))
            except Exception as e:
                record_error(span, e)
                raise
            record_usage(span, completion)
        return completion

    async def _invoke(self, call: ToolCallRequest, found: Tool) -> str:
        arguments = call.function.arguments or ""
        logger.info(f"Calling {found.name} with {arguments}")
        async with tool_span(found.name, call.id) as span:
            try:
                return await found.invoke(arguments)
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid JSON in arguments for {found.name}: {e}")
                record_error(span, e)
                return f"Error: invalid arguments for {found.name}: {e}"
            except Exception as e:
                logger.error(f"Tool {found.name} raised: {e}")
                record_error(span, e)
                return f"Error calling {found.name}: {e}"
