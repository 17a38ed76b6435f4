import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from stepchat.completion import ChatCompletion, FinishReason, Usage
from stepchat.config import DEFAULT_MAX_ROUNDS, default_chat_options
from stepchat.message import Message, user
from stepchat.options import ChatOptions
from stepchat.provider import ChatApi
from stepchat.request import RequestBuilder
from stepchat.retry import RetryExecutor
from stepchat.runner import FunctionCallRunner, RunResult
from stepchat.tools import FunctionRegistry, ToolCatalog

logger = logging.getLogger(__name__)


@dataclass
class Prompt:
    """A conversation to send, plus per-call options.

    A plain string is taken as a single user message.
    """

    messages: list[Message] | str
    options: ChatOptions | dict | None = None

    def __post_init__(self):
        if isinstance(self.messages, str):
            self.messages = [user(self.messages)]


@dataclass
class Generation:
    message: Message
    finish_reason: FinishReason | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def content(self) -> str | None:
        return self.message.content


@dataclass
class ChatResponse:
    """One or more generations, with token usage when the API reports it."""

    generations: list[Generation] = field(default_factory=list)
    usage: Usage | None = None
    history: list[Message] = field(default_factory=list)

    @property
    def result(self) -> Generation | None:
        return self.generations[0] if self.generations else None


def _to_generations(completion: ChatCompletion | None) -> list[Generation]:
    if completion is None:
        return []
    generations = []
    for choice in completion.choices:
        role = choice.message.role
        finish = choice.finish_reason
        generations.append(Generation(
            message=choice.message,
            finish_reason=finish,
            metadata={
                "id": completion.id,
                "role": role.value if role is not None else None,
                "finish_reason": finish.value if finish is not None else "",
            },
        ))
    return generations


def to_response(result: RunResult) -> ChatResponse:
    completion = result.completion
    return ChatResponse(
        generations=_to_generations(completion),
        usage=completion.usage if completion is not None else None,
        history=result.history,
    )


class ChatClient:
    """Chat client with function calling, over any :class:`ChatApi`.

    Args:
        api: Transport for model rounds.
        default_options: Lowest-priority option layer. Defaults to
            :func:`stepchat.config.default_chat_options`.
        catalog: Resolves function names not registered through options.
        retry: Retry executor for each model round.
        max_rounds: Bound on model rounds per call.
    """

    def __init__(
        self,
        api: ChatApi,
        default_options: ChatOptions | None = None,
        catalog: ToolCatalog | None = None,
        retry: RetryExecutor | None = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
    ):
        self.api = api
        self.registry = FunctionRegistry(fallback=catalog)
        self.builder = RequestBuilder(
            default_options if default_options is not None else default_chat_options(),
            self.registry,
        )
        self.runner = FunctionCallRunner(
            api, self.registry, retry=retry, max_rounds=max_rounds,
        )

    async def call(self, prompt: Prompt | str) -> ChatResponse:
        """Run the conversation to a final answer."""
        prompt = prompt if isinstance(prompt, Prompt) else Prompt(prompt)
        request, scope = self.builder.prepare(
            prompt.messages, prompt.options, stream=False,
        )
        result = await self.runner.run(request, catalog=scope)
        if result.completion is None or not result.completion.choices:
            logger.warning("No chat completion returned for prompt")
        return to_response(result)

    async def stream(self, prompt: Prompt | str) -> AsyncIterator[ChatResponse]:
        """Yield responses as turns arrive.

        Text arrives one response per chunk. Tool calls are resolved
        before anything is yielded for them, and the model's follow-up
        answer is yielded as a single response.
        """
        prompt = prompt if isinstance(prompt, Prompt) else Prompt(prompt)
        request, scope = self.builder.prepare(
            prompt.messages, prompt.options, stream=True,
        )
        async for result in self.runner.iter(request, catalog=scope):
            yield to_response(result)
