"""
LLM-specific data models for the request/response cycle.

These models are internal to the inference layer and describe the raw
exchange with an engine. Business models (ParseResult, ...) live elsewhere.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class LLMGenerationRequest(BaseModel):
    """
    Standardized generation request sent to any InferenceEngine.

    The model itself is not named here: it is fixed by the session/context
    the request runs in.
    """
    model_config = ConfigDict(frozen=True)

    system_prompt: str = Field(default="", description="System prompt bound to the stage")
    prompt: str = Field(..., description="User prompt")
    temperature: float = Field(default=0.0, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=100, ge=1, le=4096, description="Maximum tokens to generate")
    format_schema: Optional[Dict[str, Any]] = Field(
        default=None,
        description="JSON Schema constraint for structured output",
    )
    stop_sequences: Optional[list[str]] = Field(default=None, description="Stop sequences for generation")


class LLMGenerationResponse(BaseModel):
    """Raw generated text plus metadata for logging."""
    model_config = ConfigDict(frozen=True)

    content: str = Field(..., description="Generated text (expected JSON)")
    model_version: str = Field(..., description="Model that produced the text")
    finish_reason: str = Field(default="stop", description="'stop', 'length', 'incomplete', ...")
    prompt_tokens: Optional[int] = Field(default=None)
    completion_tokens: Optional[int] = Field(default=None)
    latency_ms: int = Field(default=0, ge=0)
    raw_metadata: Dict[str, Any] = Field(default_factory=dict)
