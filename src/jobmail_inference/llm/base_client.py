"""
Abstract inference engine interface.

The engine is the opaque token-generation capability. The pipeline never
talks to it directly: the session pool owns model/context handles and the
bounded invoker wraps every ``generate`` call in a deadline.
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

import structlog

from jobmail_inference.models.llm_models import LLMGenerationRequest, LLMGenerationResponse

logger = structlog.get_logger(__name__)

_handle_ids = itertools.count(1)


@dataclass
class ModelHandle:
    """A loaded model. One per model path, shared by every stage using it."""

    model_path: str
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    info: Dict[str, Any] = field(default_factory=dict)
    disposed: bool = False


@dataclass
class ContextHandle:
    """An allocated context on a model, sized for one stage."""

    model: ModelHandle
    context_size: int
    batch_size: int
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    disposed: bool = False


class InferenceEngine(ABC):
    """
    Abstract base class for inference engines.

    Responsibilities:
    - Load models and allocate contexts (the expensive part)
    - Generate text for a request inside a context
    - Report health

    Does NOT handle:
    - Deadlines (that's BoundedInvoker's job)
    - Session reuse/recycling (that's SessionPool's job)
    - Output repair (that's ResponseNormalizer's job)
    """

    @abstractmethod
    async def load_model(self, model_path: str) -> ModelHandle:
        """
        Load a model.

        Raises:
            LLMModelNotAvailableError: Model not found
            LLMConnectionError: Engine unreachable
        """

    @abstractmethod
    async def create_context(self, model: ModelHandle, context_size: int, batch_size: int) -> ContextHandle:
        """
        Allocate a context on a loaded model.

        Raises:
            LLMSessionInvalidError: ``model`` was disposed
            LLMClientError: Allocation failed
        """

    @abstractmethod
    async def generate(self, context: ContextHandle, request: LLMGenerationRequest) -> LLMGenerationResponse:
        """
        Generate a completion inside ``context``.

        Implementations may ignore cancellation and may run past any
        timeout; callers must bound them externally.

        Raises:
            LLMSessionInvalidError: Context or model handle unusable
            LLMConnectionError: Network/timeout errors
            LLMGenerationError: Server-side generation errors
        """

    async def dispose_context(self, context: ContextHandle) -> None:
        context.disposed = True

    async def dispose_model(self, model: ModelHandle) -> None:
        model.disposed = True

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check. Never raises; returns False on error."""

    async def close(self) -> None:
        """Release connections. Default implementation does nothing."""
        logger.debug("Closing inference engine", engine=self.__class__.__name__)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
