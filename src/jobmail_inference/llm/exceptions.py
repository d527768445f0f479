"""
Custom exceptions for the inference engine layer.

Engine adapters raise these; the session pool and invoker translate them
into pipeline-level errors (SessionInitError, InferenceError).
"""


class LLMClientError(Exception):
    """
    Base exception for all engine errors.

    Carries a structured ``details`` dict for logging.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class LLMConnectionError(LLMClientError):
    """Unable to reach the inference server (network, DNS, refused)."""
    pass


class LLMTimeoutError(LLMConnectionError):
    """The engine's own request timeout fired before the invoker deadline."""
    pass


class LLMGenerationError(LLMClientError):
    """The server returned an error or an unusable body during generation."""
    pass


class LLMModelNotAvailableError(LLMGenerationError):
    """The requested model does not exist on the server."""
    pass


class LLMSessionInvalidError(LLMClientError):
    """
    The model/context handle behind a session can no longer be used.

    Raised for disposed handles and exhausted context sequences. The
    session that hit it must be marked unhealthy and never reused.
    """
    pass
