"""
Exceptions raised by the inference orchestration layer.

Every one of these is recoverable: the classifier catches them and falls
back one tier. They never reach the caller of ``classify``.
"""

from typing import Any


class InferenceError(Exception):
    """
    Base exception for a failed inference call.

    Wraps the engine-level error (if any) as ``__cause__``.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InferenceTimeoutError(InferenceError, TimeoutError):
    """
    The stage deadline elapsed before the engine answered.

    The in-flight call was abandoned, not joined.
    """

    def __init__(self, stage: str, deadline_ms: int):
        super().__init__(
            f"{stage} inference exceeded {deadline_ms}ms deadline",
            details={"stage": stage, "deadline_ms": deadline_ms},
        )
        self.stage = stage
        self.deadline_ms = deadline_ms


class SessionInitError(InferenceError):
    """
    Model load or context allocation failed for a stage.

    Fatal for that stage's next call only; other stages are unaffected.
    """

    def __init__(self, stage: str, model_path: str, reason: str):
        super().__init__(
            f"Failed to initialize {stage} session for {model_path}: {reason}",
            details={"stage": stage, "model_path": model_path},
        )
        self.stage = stage
        self.model_path = model_path
