"""Abstract base class for chat-completion providers.

The chat service hands a system prompt (instructions plus retrieved
context), the recent conversation and the new user message to a
completion provider, either waiting for the full answer or consuming it
as an async stream of text fragments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from sitechat.models.chat import ChatMessage


# Concrete implementations: OpenAICompletionProvider
# Located in: sitechat/providers/completion/
class ICompletionProvider(ABC):
    """Contract for LLM chat completion, whole or streamed."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> str:
        """Generate the full assistant reply.

        Parameters
        ----------
        system_prompt:
            Instructions and context for the model.
        history:
            Prior conversation turns, oldest first.  Implementations may
            keep only the most recent turns.
        user_message:
            The new question.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        sitechat.utils.errors.ConfigurationError
            If the provider has no credentials.
        sitechat.utils.errors.CompletionError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def stream_complete(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> AsyncIterator[str]:
        """Stream the assistant reply as incremental text fragments.

        The iterator ends when the provider sends its end-of-stream
        marker.  Empty fragments (role-only or keep-alive deltas) are not
        yielded.

        Raises
        ------
        sitechat.utils.errors.ConfigurationError
            If the provider has no credentials.
        sitechat.utils.errors.CompletionError
            On HTTP errors, provider error payloads or malformed frames,
            at any point during iteration.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai-gpt-4o-mini"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
