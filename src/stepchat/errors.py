class StepChatError(Exception):
    """Base class for errors raised by stepchat."""


class ToolCallContractError(StepChatError, ValueError):
    """A streamed chunk violated the one-tool-call-per-chunk contract."""


class UnresolvedToolError(StepChatError, LookupError):
    """The model asked for a function that no catalog can resolve."""

    def __init__(self, name: str):
        super().__init__(f"No function callback found for function name: {name}")
        self.name = name


class InvalidOptionsError(StepChatError, TypeError):
    """Runtime options were not a ChatOptions (or a mapping of its fields)."""


class ToolLoopExhaustedError(StepChatError, RuntimeError):
    """The tool-calling loop ran out of rounds without a final answer."""

    def __init__(self, max_rounds: int):
        super().__init__(
            f"Model was still requesting tools after {max_rounds} rounds"
        )
        self.max_rounds = max_rounds
