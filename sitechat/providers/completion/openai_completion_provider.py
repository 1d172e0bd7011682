"""OpenAI chat-completion provider adapter.

Implements :class:`ICompletionProvider` two ways:

- ``complete`` goes through the ``openai`` async SDK.
- ``stream_complete`` posts with ``stream: true`` over a plain ``httpx``
  stream and parses the server-sent lines with
  :mod:`sitechat.utils.sse`, so the frame splitting and ``[DONE]``
  detection are ours and unit-testable.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence

import httpx
import openai
import structlog

from sitechat.config.settings import Settings
from sitechat.interfaces.completion_provider import ICompletionProvider
from sitechat.models.chat import ChatMessage
from sitechat.utils.errors import CompletionError, ConfigurationError
from sitechat.utils.sse import aiter_sse_data, parse_completion_delta

logger = structlog.get_logger(logger_name=__name__)

# Streams stay open for as long as the model writes; only the connect phase
# is bounded, whatever timeout the shared client carries.
_STREAM_TIMEOUT = httpx.Timeout(None, connect=10.0)


class OpenAICompletionProvider(ICompletionProvider):
    """Completion provider backed by the OpenAI chat completions API.

    Defaults to ``gpt-4o-mini`` at temperature 0.7.  Only the last
    ``history_limit`` conversation turns are forwarded to the model.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url.rstrip("/")
        self._model = settings.openai_chat_model
        self._temperature = settings.completion_temperature
        self._max_tokens = settings.completion_max_tokens
        self._history_limit = settings.history_limit

        self._client = openai.AsyncOpenAI(
            api_key=self._api_key or "unset",
            base_url=self._base_url,
            timeout=openai.Timeout(settings.http_timeout_seconds, connect=5.0),
        )
        self._http = http_client or httpx.AsyncClient()

    # ------------------------------------------------------------------
    # ICompletionProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> str:
        self._require_key()
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=self._build_messages(system_prompt, history, user_message),
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except openai.APIError as exc:
            raise CompletionError(
                message=f"OpenAI API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CompletionError(
                message="OpenAI returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._model,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    async def stream_complete(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> AsyncIterator[str]:
        self._require_key()
        payload = {
            "model": self._model,
            "messages": self._build_messages(system_prompt, history, user_message),
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "stream": True,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        fragments = 0
        try:
            async with self._http.stream(
                "POST",
                f"{self._base_url}/chat/completions",
                json=payload,
                headers=headers,
                timeout=_STREAM_TIMEOUT,
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise CompletionError(
                        message=f"HTTP {response.status_code} from chat completions",
                        provider_name=self.get_provider_name(),
                    )
                async for data in aiter_sse_data(response.aiter_lines()):
                    fragment = parse_completion_delta(data)
                    if fragment:
                        fragments += 1
                        yield fragment
        except httpx.HTTPError as exc:
            raise CompletionError(
                message=f"Stream transport error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("openai_stream_complete", model=self._model, fragments=fragments)

    def get_provider_name(self) -> str:
        return f"openai-{self._model}"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_key(self) -> None:
        if not self.is_available():
            raise ConfigurationError(
                message="OpenAI API key is not configured",
                provider_name=self.get_provider_name(),
            )

    def _build_messages(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]
        recent = list(history)[-self._history_limit:] if self._history_limit > 0 else []
        messages.extend({"role": m.role, "content": m.content} for m in recent)
        messages.append({"role": "user", "content": user_message})
        return messages
