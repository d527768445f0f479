"""
Inference engine abstraction and implementations.

Components:
- InferenceEngine: Abstract engine (model load, context allocation, generate)
- OllamaEngine: Implementation over an Ollama server
- PromptBuilder: Stage prompts and schemas from EmailMessage
- text_utils: Body truncation helpers
- exceptions: Engine-level exceptions
"""

from jobmail_inference.llm.base_client import ContextHandle, InferenceEngine, ModelHandle
from jobmail_inference.llm.ollama_client import OllamaEngine
from jobmail_inference.llm.prompt_builder import PromptBuilder
from jobmail_inference.llm.exceptions import (
    LLMClientError,
    LLMConnectionError,
    LLMGenerationError,
    LLMModelNotAvailableError,
    LLMSessionInvalidError,
    LLMTimeoutError,
)

__all__ = [
    "ContextHandle",
    "InferenceEngine",
    "ModelHandle",
    "OllamaEngine",
    "PromptBuilder",
    "LLMClientError",
    "LLMConnectionError",
    "LLMGenerationError",
    "LLMModelNotAvailableError",
    "LLMSessionInvalidError",
    "LLMTimeoutError",
]
