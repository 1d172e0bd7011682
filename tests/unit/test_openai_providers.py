"""Unit tests for the OpenAI embedding and completion provider adapters."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from sitechat.models.chat import ChatMessage
from sitechat.providers.completion.openai_completion_provider import OpenAICompletionProvider
from sitechat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from sitechat.utils.errors import CompletionError, ConfigurationError, EmbeddingFailureError
from tests.conftest import make_settings

_EMBED_PATCH = "sitechat.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"
_CHAT_PATCH = "sitechat.providers.completion.openai_completion_provider.openai.AsyncOpenAI"


def _api_error(message: str = "Rate limit exceeded") -> openai.APIError:
    return openai.APIError(message=message, request=MagicMock(), body=None)


def _embedding_response(dim: int = 1536) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=[0.01] * dim)]
    response.usage = MagicMock(total_tokens=12)
    return response


# ======================================================================
# Embeddings
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_returns_vector(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response())

        with patch(_EMBED_PATCH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(make_settings())
            vector = await provider.embed("Document remediation pricing")

        assert len(vector) == 1536
        mock_client.embeddings.create.assert_awaited_once_with(
            input="Document remediation pricing", model="text-embedding-3-small"
        )

    @pytest.mark.asyncio
    async def test_long_input_is_truncated(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response())

        with patch(_EMBED_PATCH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(make_settings(embedding_max_chars=100))
            await provider.embed("x" * 500)

        sent = mock_client.embeddings.create.await_args.kwargs["input"]
        assert len(sent) == 100

    @pytest.mark.asyncio
    async def test_wrong_dimension_is_a_failure(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response(dim=512))

        with patch(_EMBED_PATCH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(make_settings())
            with pytest.raises(EmbeddingFailureError, match="512"):
                await provider.embed("text")

    @pytest.mark.asyncio
    async def test_empty_data_is_a_failure(self) -> None:
        response = _embedding_response()
        response.data = []
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=response)

        with patch(_EMBED_PATCH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(make_settings())
            with pytest.raises(EmbeddingFailureError):
                await provider.embed("text")

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=_api_error())

        with patch(_EMBED_PATCH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(make_settings())
            with pytest.raises(EmbeddingFailureError, match="Rate limit"):
                await provider.embed("text")

    @pytest.mark.asyncio
    async def test_missing_key_raises_configuration_error(self) -> None:
        mock_client = AsyncMock()
        with patch(_EMBED_PATCH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(make_settings(openai_api_key=""))
            assert provider.is_available() is False
            with pytest.raises(ConfigurationError):
                await provider.embed("text")
        mock_client.embeddings.create.assert_not_called()

    def test_dimension_follows_model(self) -> None:
        with patch(_EMBED_PATCH, return_value=AsyncMock()):
            large = OpenAIEmbeddingProvider(
                make_settings(openai_embedding_model="text-embedding-3-large")
            )
            small = OpenAIEmbeddingProvider(make_settings())
        assert large.get_dimension() == 3072
        assert small.get_dimension() == 1536
        assert small.get_provider_name() == "openai-text-embedding-3-small"


# ======================================================================
# Completions
# ======================================================================


class _FakeStreamResponse:
    def __init__(self, lines: list[str], status_code: int = 200) -> None:
        self._lines = lines
        self.status_code = status_code
        self.aread = AsyncMock(return_value=b"")

    async def aiter_lines(self):
        for line in self._lines:
            yield line


class _FakeStream:
    """Async context manager returned by ``httpx.AsyncClient.stream``."""

    def __init__(self, response: _FakeStreamResponse | None = None, error: Exception | None = None):
        self._response = response
        self._error = error

    async def __aenter__(self) -> _FakeStreamResponse:
        if self._error is not None:
            raise self._error
        return self._response

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


def _delta_line(content: str | None) -> str:
    delta = {} if content is None else {"content": content}
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": delta}]})


def _http_client(stream: _FakeStream) -> MagicMock:
    client = MagicMock(spec=httpx.AsyncClient)
    client.stream = MagicMock(return_value=stream)
    return client


class TestOpenAICompletionProvider:
    @pytest.mark.asyncio
    async def test_complete_returns_text(self) -> None:
        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content="We offer audits."))]
        mock_response.usage = MagicMock(total_tokens=80)
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch(_CHAT_PATCH, return_value=mock_client):
            provider = OpenAICompletionProvider(make_settings(), http_client=MagicMock())
            result = await provider.complete("system", [], "What do you offer?")

        assert result == "We offer audits."
        kwargs = mock_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.7
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["messages"][-1] == {"role": "user", "content": "What do you offer?"}

    @pytest.mark.asyncio
    async def test_complete_error_is_wrapped(self) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=_api_error())

        with patch(_CHAT_PATCH, return_value=mock_client):
            provider = OpenAICompletionProvider(make_settings(), http_client=MagicMock())
            with pytest.raises(CompletionError):
                await provider.complete("system", [], "hi")

    @pytest.mark.asyncio
    async def test_empty_completion_is_an_error(self) -> None:
        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content=""))]
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch(_CHAT_PATCH, return_value=mock_client):
            provider = OpenAICompletionProvider(make_settings(), http_client=MagicMock())
            with pytest.raises(CompletionError, match="empty"):
                await provider.complete("system", [], "hi")

    @pytest.mark.asyncio
    async def test_history_is_trimmed(self) -> None:
        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content="ok"))]
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)
        history = [
            ChatMessage(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}")
            for i in range(6)
        ]

        with patch(_CHAT_PATCH, return_value=mock_client):
            provider = OpenAICompletionProvider(
                make_settings(history_limit=2), http_client=MagicMock()
            )
            await provider.complete("system", history, "latest")

        messages = mock_client.chat.completions.create.await_args.kwargs["messages"]
        assert [m["content"] for m in messages] == ["system", "turn 4", "turn 5", "latest"]

    @pytest.mark.asyncio
    async def test_stream_yields_fragments_in_order(self) -> None:
        response = _FakeStreamResponse(
            [
                _delta_line(None),
                "",
                _delta_line("Hel"),
                ": keep-alive",
                _delta_line("lo"),
                "data: [DONE]",
                _delta_line("never"),
            ]
        )
        client = _http_client(_FakeStream(response))

        with patch(_CHAT_PATCH, return_value=AsyncMock()):
            provider = OpenAICompletionProvider(make_settings(), http_client=client)
            fragments = [f async for f in provider.stream_complete("system", [], "hi")]

        assert fragments == ["Hel", "lo"]
        method, url = client.stream.call_args.args
        assert method == "POST"
        assert url == "https://api.openai.com/v1/chat/completions"
        payload = client.stream.call_args.kwargs["json"]
        assert payload["stream"] is True
        assert client.stream.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-test"
        timeout = client.stream.call_args.kwargs["timeout"]
        assert timeout.read is None
        assert timeout.connect == 10.0

    @pytest.mark.asyncio
    async def test_stream_frame_with_unexpected_shape(self) -> None:
        response = _FakeStreamResponse(
            [_delta_line("Hel"), "data: " + json.dumps({"choices": [{"delta": "text"}]})]
        )
        client = _http_client(_FakeStream(response))

        with patch(_CHAT_PATCH, return_value=AsyncMock()):
            provider = OpenAICompletionProvider(make_settings(), http_client=client)
            received: list[str] = []
            with pytest.raises(CompletionError, match="Unexpected delta"):
                async for fragment in provider.stream_complete("system", [], "hi"):
                    received.append(fragment)

        assert received == ["Hel"]

    @pytest.mark.asyncio
    async def test_stream_http_error_status(self) -> None:
        response = _FakeStreamResponse([], status_code=429)
        client = _http_client(_FakeStream(response))

        with patch(_CHAT_PATCH, return_value=AsyncMock()):
            provider = OpenAICompletionProvider(make_settings(), http_client=client)
            with pytest.raises(CompletionError, match="429"):
                async for _ in provider.stream_complete("system", [], "hi"):
                    pass
        response.aread.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_transport_error(self) -> None:
        client = _http_client(_FakeStream(error=httpx.ConnectError("refused")))

        with patch(_CHAT_PATCH, return_value=AsyncMock()):
            provider = OpenAICompletionProvider(make_settings(), http_client=client)
            with pytest.raises(CompletionError, match="transport"):
                async for _ in provider.stream_complete("system", [], "hi"):
                    pass

    @pytest.mark.asyncio
    async def test_stream_error_payload_mid_stream(self) -> None:
        response = _FakeStreamResponse(
            [_delta_line("partial"), "data: " + json.dumps({"error": {"message": "overloaded"}})]
        )
        client = _http_client(_FakeStream(response))

        with patch(_CHAT_PATCH, return_value=AsyncMock()):
            provider = OpenAICompletionProvider(make_settings(), http_client=client)
            received: list[str] = []
            with pytest.raises(CompletionError, match="overloaded"):
                async for fragment in provider.stream_complete("system", [], "hi"):
                    received.append(fragment)
        assert received == ["partial"]

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_request(self) -> None:
        client = _http_client(_FakeStream(_FakeStreamResponse([])))

        with patch(_CHAT_PATCH, return_value=AsyncMock()):
            provider = OpenAICompletionProvider(make_settings(openai_api_key=""), http_client=client)
            with pytest.raises(ConfigurationError):
                async for _ in provider.stream_complete("system", [], "hi"):
                    pass
        client.stream.assert_not_called()
