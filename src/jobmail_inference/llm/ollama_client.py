"""
Ollama-backed inference engine.

Communicates with the Ollama API using httpx AsyncClient:
- POST /api/show      model "load" (existence + metadata)
- POST /api/generate  structured generation (format = JSON Schema)
- GET  /api/tags      health check

Ollama keeps models resident on its side, so a "context" here is the
per-stage option set (num_ctx / num_batch) sent with every request.
"""

import asyncio
import json
import time
from typing import Optional

import httpx
import structlog

from jobmail_inference.llm.base_client import ContextHandle, InferenceEngine, ModelHandle
from jobmail_inference.llm.exceptions import (
    LLMConnectionError,
    LLMGenerationError,
    LLMModelNotAvailableError,
    LLMSessionInvalidError,
    LLMTimeoutError,
)
from jobmail_inference.models.llm_models import LLMGenerationRequest, LLMGenerationResponse
from jobmail_inference.monitoring.metrics import llm_tokens_total

logger = structlog.get_logger(__name__)

# Ollama reports exhausted/evicted contexts with these fragments
_INVALID_HANDLE_MARKERS = ("no sequences left", "model is not loaded", "context has been disposed")


class OllamaEngine(InferenceEngine):
    """
    InferenceEngine over an Ollama server.

    The httpx client is created lazily on first use and reused
    (connection pooling) until ``close``.
    """

    def __init__(
        self,
        base_url: str = "http://ollama:11434",
        timeout: int = 30,
        max_retries: int = 1,
        connection_limits: Optional[httpx.Limits] = None,
    ):
        """
        Args:
            base_url: Ollama server URL
            timeout: Per-request timeout in seconds (not trusted as a deadline)
            max_retries: Attempts for network errors
            connection_limits: httpx pool limits
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._connection_limits = connection_limits or httpx.Limits(
            max_keepalive_connections=4,
            max_connections=8,
            keepalive_expiry=30.0,
        )
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Ollama engine initialized",
            base_url=self.base_url,
            timeout=timeout,
            max_retries=self.max_retries,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                follow_redirects=True,
            )
            logger.debug("Created new httpx AsyncClient")
        return self._client

    async def load_model(self, model_path: str) -> ModelHandle:
        """Verify the model exists via POST /api/show and return a handle."""
        try:
            client = await self._get_client()
            response = await client.post("/api/show", json={"name": model_path}, timeout=10.0)
            response.raise_for_status()
            details = response.json().get("details", {})
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise LLMModelNotAvailableError(
                    f"Model not found: {model_path}",
                    details={"model": model_path},
                ) from e
            raise LLMConnectionError(
                f"Failed to load model: {e}",
                details={"model": model_path, "status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise LLMConnectionError(
                f"Error loading model: {e}",
                details={"model": model_path, "error_type": type(e).__name__},
            ) from e

        logger.info("Model loaded", model=model_path, details=details)
        return ModelHandle(model_path=model_path, info=details)

    async def create_context(self, model: ModelHandle, context_size: int, batch_size: int) -> ContextHandle:
        if model.disposed:
            raise LLMSessionInvalidError(
                "Cannot allocate context on a disposed model",
                details={"model": model.model_path},
            )
        return ContextHandle(model=model, context_size=context_size, batch_size=batch_size)

    async def generate(self, context: ContextHandle, request: LLMGenerationRequest) -> LLMGenerationResponse:
        """
        Generate via POST /api/generate.

        Payload:
        {
            "model": "llama3.2:3b",
            "system": "...",
            "prompt": "...",
            "stream": false,
            "format": <JSON Schema>,
            "options": {"temperature": 0, "num_predict": 48, "num_ctx": 512, "num_batch": 512}
        }
        """
        if context.disposed or context.model.disposed:
            raise LLMSessionInvalidError(
                "Context has been disposed",
                details={"context_id": context.handle_id},
            )

        model = context.model.model_path
        payload = {
            "model": model,
            "prompt": request.prompt,
            "stream": False,
            "format": request.format_schema or "json",
            "options": {
                "temperature": request.temperature,
                "num_predict": request.max_tokens,
                "num_ctx": context.context_size,
                "num_batch": context.batch_size,
            },
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        if request.stop_sequences:
            payload["options"]["stop"] = request.stop_sequences

        start_time = time.time()
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                client = await self._get_client()
                response = await client.post("/api/generate", json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException as e:
                last_error = LLMTimeoutError(
                    f"Request timeout after {self.timeout}s",
                    details={"attempt": attempt, "timeout": self.timeout},
                )
                logger.warning("Ollama request timeout", attempt=attempt, error=str(e))
            except httpx.HTTPStatusError as e:
                error_text = e.response.text
                if any(marker in error_text.lower() for marker in _INVALID_HANDLE_MARKERS):
                    raise LLMSessionInvalidError(
                        "Ollama reported an unusable context",
                        details={"status": e.response.status_code, "error": error_text[:200]},
                    ) from e
                if e.response.status_code == 404:
                    raise LLMModelNotAvailableError(
                        f"Model not found: {model}",
                        details={"model": model},
                    ) from e
                last_error = LLMGenerationError(
                    f"Ollama error: {e.response.status_code}",
                    details={"status": e.response.status_code, "error": error_text[:200]},
                )
                if e.response.status_code < 500:
                    raise last_error from e
                logger.warning("Ollama server error", status_code=e.response.status_code, attempt=attempt)
            except (httpx.NetworkError, httpx.ConnectError) as e:
                last_error = LLMConnectionError(
                    f"Network error: {e}",
                    details={"attempt": attempt, "error_type": type(e).__name__},
                )
                logger.warning("Ollama network error", attempt=attempt, error=str(e))
            except json.JSONDecodeError as e:
                raise LLMGenerationError(
                    "Invalid JSON response from Ollama",
                    details={"parse_error": str(e)},
                ) from e
            else:
                return self._to_response(data, model, start_time)

            if attempt < self.max_retries:
                await asyncio.sleep(0.2 * attempt)

        raise last_error or LLMGenerationError("Generation failed")

    def _to_response(self, data: dict, model: str, start_time: float) -> LLMGenerationResponse:
        content = data.get("response", "")
        if not content:
            raise LLMGenerationError("Empty response from Ollama", details={"done": data.get("done")})

        model_version = data.get("model", model)
        prompt_tokens = data.get("prompt_eval_count")
        completion_tokens = data.get("eval_count")
        if prompt_tokens:
            llm_tokens_total.labels(model=model_version, token_type="prompt").inc(prompt_tokens)
        if completion_tokens:
            llm_tokens_total.labels(model=model_version, token_type="completion").inc(completion_tokens)

        return LLMGenerationResponse(
            content=content,
            model_version=model_version,
            finish_reason=data.get("done_reason") or ("stop" if data.get("done") else "incomplete"),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=int((time.time() - start_time) * 1000),
            raw_metadata={
                "total_duration": data.get("total_duration"),
                "load_duration": data.get("load_duration"),
            },
        )

    async def health_check(self) -> bool:
        """Check server health via GET /api/tags."""
        try:
            client = await self._get_client()
            response = await client.get("/api/tags", timeout=5.0)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.warning("Ollama health check failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed Ollama client connection")

    def __repr__(self) -> str:
        return f"OllamaEngine(base_url={self.base_url}, timeout={self.timeout}s)"
