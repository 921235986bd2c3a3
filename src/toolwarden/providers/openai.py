"""
Toolwarden OpenAI Provider

Wraps the OpenAI API (and OpenAI-compatible endpoints via base_url)
behind the LLMProvider interface.

Requires: `pip install toolwarden[openai]`
Set OPENAI_API_KEY environment variable.

Function-call arguments that are not valid JSON are passed through as
the raw string, so the engine reports them as invalid arguments instead
of the whole turn failing.
"""

from __future__ import annotations

import json
from typing import Any

from toolwarden.agent.models import FinalAnswer, ModelTurn, ToolCallBatch, Transcript
from toolwarden.core.models import MessageRole
from toolwarden.exceptions import ModelCommunicationError
from toolwarden.providers.base import LLMProvider, ProviderConfig, result_payload
from toolwarden.tools.models import ToolCallRequest, ToolSchema

_FATAL_ERROR_NAMES = {
    "AuthenticationError",
    "PermissionDeniedError",
    "BadRequestError",
    "NotFoundError",
}


class OpenAIProvider(LLMProvider):
    """OpenAI and OpenAI-compatible provider.

    Uses the official openai Python SDK. Falls back to OPENAI_API_KEY env var.
    """

    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, config: ProviderConfig | None = None, client: Any | None = None):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        if not self._config.model:
            self._config.model = self.DEFAULT_MODEL
        self._client = client or self._create_client()

    def _create_client(self) -> Any:
        """Create OpenAI async client. Imports openai lazily."""
        try:
            from openai import AsyncOpenAI
        except ImportError as e:
            raise ImportError(
                "OpenAI provider requires the 'openai' package. "
                "Install with: pip install toolwarden[openai]"
            ) from e

        kwargs: dict[str, Any] = {"timeout": self._config.timeout_seconds}
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key
        if self._config.base_url:
            kwargs["base_url"] = self._config.base_url
        return AsyncOpenAI(**kwargs)

    def _is_retryable(self, error: Exception) -> bool:
        return type(error).__name__ not in _FATAL_ERROR_NAMES

    async def _complete_impl(
        self,
        transcript: Transcript,
        tools: list[ToolSchema],
        model: str,
    ) -> ModelTurn:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": self._config.max_tokens,
            "messages": self.to_messages(transcript, self._config.system_prompt),
        }
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in tools
            ]

        response = await self._client.chat.completions.create(**kwargs)
        return self._to_turn(response)

    @staticmethod
    def to_messages(transcript: Transcript, system: str | None = None) -> list[dict[str, Any]]:
        """Convert the transcript to Chat Completions format.

        Each tool result becomes its own ``tool`` message.
        """
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})

        for msg in transcript:
            if msg.role == MessageRole.USER:
                messages.append({"role": "user", "content": msg.text})
            elif msg.role == MessageRole.ASSISTANT:
                entry: dict[str, Any] = {"role": "assistant", "content": msg.text or None}
                if msg.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.call_id,
                            "type": "function",
                            "function": {
                                "name": call.tool_name,
                                "arguments": (
                                    call.raw_arguments
                                    if isinstance(call.raw_arguments, str)
                                    else json.dumps(call.raw_arguments)
                                ),
                            },
                        }
                        for call in msg.tool_calls
                    ]
                messages.append(entry)
            else:
                for result in msg.results:
                    messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": result.call_id,
                            "content": result_payload(result),
                        }
                    )
        return messages

    def _to_turn(self, response: Any) -> ModelTurn:
        """Convert an OpenAI response to a ModelTurn."""
        if not response.choices:
            raise ModelCommunicationError(self.name, "response contained no choices", retryable=False)
        choice = response.choices[0]

        msg = choice.message
        requests: list[ToolCallRequest] = []
        for tc in msg.tool_calls or []:
            try:
                arguments: Any = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                arguments = tc.function.arguments
            requests.append(
                ToolCallRequest(
                    call_id=tc.id,
                    tool_name=tc.function.name,
                    raw_arguments=arguments,
                )
            )

        text = msg.content or ""
        if requests:
            return ToolCallBatch(requests=requests, text=text)
        return FinalAnswer(text=text)
