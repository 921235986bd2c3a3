"""
Toolwarden Claude Provider

Wraps the Anthropic SDK (anthropic.AsyncAnthropic) behind the
LLMProvider interface. Tool results travel back as ``tool_result``
content blocks holding the JSON wire shape of each result.
"""

from __future__ import annotations

from typing import Any

import anthropic

from toolwarden.agent.models import FinalAnswer, ModelTurn, ToolCallBatch, Transcript
from toolwarden.core.models import MessageRole
from toolwarden.providers.base import LLMProvider, ProviderConfig, result_payload
from toolwarden.tools.models import ToolCallRequest, ToolSchema

# Errors that no amount of retrying will fix.
_FATAL_ERRORS = (
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
    anthropic.BadRequestError,
    anthropic.NotFoundError,
)


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider via the official SDK.

    Falls back to ANTHROPIC_API_KEY env var if no key provided.
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        config: ProviderConfig | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        if not self._config.model:
            self._config.model = self.DEFAULT_MODEL
        kwargs: dict[str, Any] = {"timeout": self._config.timeout_seconds}
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key
        if self._config.base_url:
            kwargs["base_url"] = self._config.base_url
        self._client = client or anthropic.AsyncAnthropic(**kwargs)

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        return self._client

    def _is_retryable(self, error: Exception) -> bool:
        return not isinstance(error, _FATAL_ERRORS)

    async def _complete_impl(
        self,
        transcript: Transcript,
        tools: list[ToolSchema],
        model: str,
    ) -> ModelTurn:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": self._config.max_tokens,
            "messages": self.to_messages(transcript),
        }
        if self._config.system_prompt:
            kwargs["system"] = self._config.system_prompt
        if tools:
            kwargs["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.parameters,
                }
                for t in tools
            ]

        response = await self._client.messages.create(**kwargs)
        return self._to_turn(response)

    @staticmethod
    def to_messages(transcript: Transcript) -> list[dict[str, Any]]:
        """Convert the transcript to Anthropic Messages API format."""
        messages: list[dict[str, Any]] = []
        for msg in transcript:
            if msg.role == MessageRole.USER:
                messages.append({"role": "user", "content": msg.text})
            elif msg.role == MessageRole.ASSISTANT:
                blocks: list[dict[str, Any]] = []
                if msg.text:
                    blocks.append({"type": "text", "text": msg.text})
                for call in msg.tool_calls:
                    arguments = call.raw_arguments
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": call.call_id,
                            "name": call.tool_name,
                            "input": arguments if isinstance(arguments, dict) else {"value": arguments},
                        }
                    )
                messages.append({"role": "assistant", "content": blocks or msg.text})
            else:
                messages.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": result.call_id,
                                "content": result_payload(result),
                                "is_error": not result.ok,
                            }
                            for result in msg.results
                        ],
                    }
                )
        return messages

    @staticmethod
    def _to_turn(response: Any) -> ModelTurn:
        """Convert an Anthropic response to a ModelTurn."""
        text_parts: list[str] = []
        requests: list[ToolCallRequest] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                requests.append(
                    ToolCallRequest(
                        call_id=block.id,
                        tool_name=block.name,
                        raw_arguments=block.input,
                    )
                )

        text = "".join(text_parts)
        if requests:
            return ToolCallBatch(requests=requests, text=text)
        return FinalAnswer(text=text)

    @classmethod
    def from_client(cls, client: anthropic.AsyncAnthropic, model: str | None = None) -> ClaudeProvider:
        """Create a ClaudeProvider from an existing Anthropic client."""
        config = ProviderConfig(model=model or cls.DEFAULT_MODEL)
        return cls(config=config, client=client)
