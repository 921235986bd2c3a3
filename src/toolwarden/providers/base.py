"""
Toolwarden Model Provider Base

Abstract interface for model providers. The agent loop only knows the
``ModelClient`` protocol; providers translate the provider-neutral
transcript into their wire format and the response back into a
``ModelTurn``.

Key design decisions:
- Async-first (all providers are async)
- Retry with exponential backoff built into the base class
- Non-retryable errors (bad credentials, malformed requests) fail at once
- Every failure surfaces as ModelCommunicationError
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from toolwarden.agent.models import ModelTurn, Transcript
from toolwarden.exceptions import ModelCommunicationError
from toolwarden.logging import get_logger
from toolwarden.tools.models import ToolCallResult, ToolSchema

logger = get_logger("toolwarden.providers")


@runtime_checkable
class ModelClient(Protocol):
    """What the agent loop needs from a model provider."""

    async def complete(
        self,
        transcript: Transcript,
        tools: list[ToolSchema],
        model: str | None = None,
    ) -> ModelTurn: ...


class ProviderConfig(BaseModel):
    """Configuration for a model provider."""
    api_key: str | None = None
    model: str = ""
    base_url: str | None = None
    system_prompt: str | None = None
    max_tokens: int = 4096
    max_retries: int = 3
    timeout_seconds: float = 60.0
    retry_base_delay: float = 1.0  # exponential backoff base (1s, 2s, 4s)


def result_payload(result: ToolCallResult) -> str:
    """A tool result as the JSON text embedded in provider messages."""
    return json.dumps(result.to_wire(), default=str)


class LLMProvider(ABC):
    """Abstract base class for model providers.

    Subclasses implement ``_complete_impl``. The base class wraps it with
    retry logic and error normalization.
    """

    def __init__(self, config: ProviderConfig | None = None):
        self._config = config or ProviderConfig()

    @property
    def name(self) -> str:
        """Human-readable provider name."""
        return self.__class__.__name__

    @property
    def model(self) -> str:
        """Default model name."""
        return self._config.model

    @abstractmethod
    async def _complete_impl(
        self,
        transcript: Transcript,
        tools: list[ToolSchema],
        model: str,
    ) -> ModelTurn:
        """Provider-specific request. The base class wraps it with retries."""
        ...

    def _is_retryable(self, error: Exception) -> bool:
        """Whether another attempt could succeed. Subclasses refine this."""
        return True

    async def complete(
        self,
        transcript: Transcript,
        tools: list[ToolSchema],
        model: str | None = None,
    ) -> ModelTurn:
        """Ask the model for its next turn, retrying transient failures.

        Raises:
            ModelCommunicationError: On a non-retryable error, or once
                retries are exhausted.
        """
        effective_model = model or self._config.model
        attempts = max(1, self._config.max_retries)

        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                return await self._complete_impl(transcript, tools, effective_model)
            except ModelCommunicationError:
                raise
            except Exception as e:
                last_error = e
                if not self._is_retryable(e):
                    raise ModelCommunicationError(
                        self.name, f"{type(e).__name__}: {e}", retryable=False
                    ) from e
                logger.warning(
                    "Model request failed (attempt %d/%d): %s",
                    attempt + 1,
                    attempts,
                    e,
                )
                if attempt < attempts - 1:
                    delay = self._config.retry_base_delay * (2 ** attempt)
                    await asyncio.sleep(delay)

        raise ModelCommunicationError(
            self.name,
            f"failed after {attempts} attempts: {last_error}",
        ) from last_error
