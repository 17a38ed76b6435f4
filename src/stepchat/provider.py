import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from stepchat.completion import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionRequest,
)
from stepchat.config import ConnectionSettings

logger = logging.getLogger(__name__)

# Request fields the OpenAI SDK accepts as keyword arguments. Everything
# else travels in ``extra_body``.
_SDK_FIELDS = (
    "model",
    "messages",
    "stream",
    "temperature",
    "top_p",
    "max_tokens",
    "stop",
    "tools",
    "tool_choice",
)


class ChatApi(ABC):
    """Transport for chat completion requests."""

    @abstractmethod
    async def complete(
        self, request: ChatCompletionRequest
    ) -> ChatCompletion | None:
        """Send a non-streaming request and return the aggregate response."""

    @abstractmethod
    async def stream(
        self, request: ChatCompletionRequest
    ) -> AsyncIterator[ChatCompletionChunk]:
        """Open a streaming request and return its chunk iterator."""


def _create_kwargs(request: ChatCompletionRequest) -> dict:
    body = request.to_wire()
    kwargs = {name: body.pop(name) for name in _SDK_FIELDS if name in body}
    if body:
        kwargs["extra_body"] = body
    return kwargs


class StepFunApi(ChatApi):
    """StepFun chat completions over the OpenAI-compatible endpoint.

    Args:
        api_key: API key, defaults to ``STEPFUN_API_KEY``.
        base_url: Endpoint, defaults to ``STEPFUN_BASE_URL`` or the
            public StepFun URL.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        settings = ConnectionSettings.from_env()
        self.base_url = (base_url or settings.base_url).rstrip("/")
        # Retries happen per model round in the runner.
        self.client = AsyncOpenAI(
            api_key=api_key or settings.api_key,
            base_url=self.base_url,
            max_retries=0,
            timeout=timeout if timeout is not None else settings.timeout,
        )

    async def complete(
        self, request: ChatCompletionRequest
    ) -> ChatCompletion | None:
        if request.stream:
            raise ValueError("Request must set the stream property to false.")
        response = await self.client.chat.completions.create(
            **_create_kwargs(request)
        )
        if response is None:
            logger.warning("No chat completion returned")
            return None
        return ChatCompletion.model_validate(response.model_dump())

    async def stream(
        self, request: ChatCompletionRequest
    ) -> AsyncIterator[ChatCompletionChunk]:
        if not request.stream:
            raise ValueError("Request must set the stream property to true.")
        response = await self.client.chat.completions.create(
            **_create_kwargs(request)
        )
        return self._iter_chunks(response)

    async def _iter_chunks(self, response) -> AsyncIterator[ChatCompletionChunk]:
        try:
            async for chunk in response:
                yield ChatCompletionChunk.model_validate(chunk.model_dump())
        finally:
            await response.close()
