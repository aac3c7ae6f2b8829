"""Hosted LLM completion client.

Wraps AsyncAnthropic with the configured model, sampling parameters and
an explicit timeout. The SDK retries at most once; any API failure is
surfaced as UpstreamUnavailableError with a generic user-facing message.
"""

import logging
import os
from typing import Protocol

from anthropic import APIError, AsyncAnthropic

from src.config import LLMConfig
from src.errors.domain import UpstreamUnavailableError
from src.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

_ROLE_FOR_SENDER = {"user": "user", "ai": "assistant"}


class CompletionClient(Protocol):
    """Anything that can turn a system prompt plus messages into text."""

    async def complete(self, system: str, messages: list[dict[str, str]]) -> str: ...


def to_llm_messages(history: list[dict[str, str]], prompt: str) -> list[dict[str, str]]:
    """Convert stored messages plus the new prompt into API messages.

    The API requires the first message to come from the user and roles
    to alternate, so leading AI messages are dropped and consecutive
    messages from the same sender are merged.
    """
    turns = [*history, {"sender": "user", "text": prompt}]
    result: list[dict[str, str]] = []
    for message in turns:
        role = _ROLE_FOR_SENDER.get(message.get("sender"), "user")
        text = message.get("text") or ""
        if not text:
            continue
        if not result and role != "user":
            continue
        if result and result[-1]["role"] == role:
            result[-1]["content"] += "\n\n" + text
        else:
            result.append({"role": role, "content": text})
    return result


class AnthropicLLMClient:
    """Completion client backed by the Anthropic Messages API.

    Args:
        config: Model and sampling configuration.
        api_key: Overrides ANTHROPIC_API_KEY.
    """

    def __init__(self, config: LLMConfig, api_key: str | None = None) -> None:
        self._config = config
        self._api_key = api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        self._client: AsyncAnthropic | None = None

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=self._api_key,
                timeout=self._config.timeout_seconds,
                max_retries=1,
            )
        return self._client

    async def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        """Return the completion text for a conversation.

        Raises:
            UpstreamUnavailableError: Key missing, API error or timeout.
        """
        if not self.configured:
            logger.error("ANTHROPIC_API_KEY is not configured")
            raise UpstreamUnavailableError("llm")
        try:
            response = await self._get_client().messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=system,
                messages=messages,
            )
        except APIError as e:
            logger.error("LLM request failed: %s", sanitize_error_message(str(e)))
            raise UpstreamUnavailableError("llm") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            logger.warning("LLM returned an empty completion (stop_reason=%s)", response.stop_reason)
            raise UpstreamUnavailableError("llm")
        return text
