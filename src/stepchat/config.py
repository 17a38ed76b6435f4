import os

from pydantic import BaseModel

from stepchat.completion import ChatModel
from stepchat.options import ChatOptions

DEFAULT_BASE_URL = "https://api.stepfun.com/v1"
DEFAULT_MODEL = ChatModel.STEP_1V.value
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TEMPERATURE = 0.5
DEFAULT_TOP_P = 0.9
DEFAULT_TIMEOUT = 600.0
DEFAULT_MAX_ROUNDS = 10

API_KEY_ENV = "STEPFUN_API_KEY"
BASE_URL_ENV = "STEPFUN_BASE_URL"


class ConnectionSettings(BaseModel):
    """Where and how to reach the chat completions endpoint."""

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "ConnectionSettings":
        return cls(
            api_key=os.getenv(API_KEY_ENV),
            base_url=os.getenv(BASE_URL_ENV) or DEFAULT_BASE_URL,
        )


def default_chat_options() -> ChatOptions:
    """The lowest-priority option layer applied to every request."""
    return ChatOptions(
        model=DEFAULT_MODEL,
        max_tokens=DEFAULT_MAX_TOKENS,
        do_sample=True,
        temperature=DEFAULT_TEMPERATURE,
        top_p=DEFAULT_TOP_P,
    )
