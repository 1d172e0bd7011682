"""Context assembly and answer generation for the chat widget.

Accepts a user question and the recent conversation, retrieves passages
through the :class:`~sitechat.services.retrieval.HybridRetriever`, packs
the best of them into a system prompt and asks the completion provider
for an answer, either streamed fragment by fragment or whole.

Architecture overview
---------------------
  1. VALIDATE   -- an empty question is rejected before any embedding or
                   search work.
  2. RETRIEVE   -- hybrid retrieval returns ranked, de-duplicated passages.
  3. CITE       -- the first three unique URLs become the sources event.
  4. CONTEXT    -- up to three substantial passages with distinct base
                   titles are concatenated into the context block.
  5. GENERATE   -- the completion provider streams text fragments, each
                   forwarded as a content event.

Any provider failure during generation becomes a single error event with a
generic apology; the transport layer only writes the terminal ``[DONE]``
frame when the stream ends without one.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING

import structlog

from sitechat.models.chat import (
    ChatMessage,
    ChatReply,
    ContentEvent,
    ErrorEvent,
    Source,
    SourcesEvent,
    StreamEvent,
)
from sitechat.models.rag import SearchResult
from sitechat.utils.errors import SiteChatError, UserInputInvalidError
from sitechat.utils.logging import get_logger
from sitechat.utils.text_normalizer import base_title, focus_keyword

if TYPE_CHECKING:
    from sitechat.config.settings import Settings
    from sitechat.interfaces.completion_provider import ICompletionProvider
    from sitechat.services.retrieval.hybrid_retriever import HybridRetriever

logger: structlog.BoundLogger = get_logger(__name__)

APOLOGY_MESSAGE = "Sorry, something went wrong while generating a response. Please try again."
NO_CONTEXT_NOTE = "No indexed content matched this question."


class ChatService:
    """Answers visitor questions from the site's indexed content.

    Parameters
    ----------
    retriever:
        Hybrid retriever over the site's vector store.
    completion_provider:
        LLM used to write the answer.
    settings:
        Context and citation limits.
    """

    _SYSTEM_PROMPT = (
        "You are an AI assistant using this website's indexed data.\n"
        'Focus your answer on the keyword "{focus}".\n'
        "Answer only from the context below. If the context does not contain "
        "the answer, say that you do not have that information and suggest "
        "contacting the site team. Do not invent prices, services or contact "
        "details.\n"
        "---\n"
        "Context:\n"
        "{context}"
    )

    def __init__(
        self,
        retriever: HybridRetriever,
        completion_provider: ICompletionProvider,
        settings: Settings,
    ) -> None:
        self._retriever = retriever
        self._completion = completion_provider
        self._settings = settings

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build_context(self, results: Sequence[SearchResult]) -> str:
        """Concatenate up to ``max_context_results`` substantial passages.

        Passages shorter than ``min_context_chars`` are skipped, as is any
        passage whose base title (part suffix removed) was already used.
        """
        blocks: list[str] = []
        seen_titles: set[str] = set()
        for result in results:
            if len(blocks) >= self._settings.max_context_results:
                break
            content = result.content.strip()
            if len(content) <= self._settings.min_context_chars:
                continue
            key = base_title(result.title).lower()
            if key in seen_titles:
                continue
            seen_titles.add(key)
            blocks.append(f"Title: {result.title}\n{content}\n\n")
        return "".join(blocks)

    def build_system_prompt(self, focus: str, context: str) -> str:
        return self._SYSTEM_PROMPT.format(
            focus=focus,
            context=context.strip() or NO_CONTEXT_NOTE,
        )

    def collect_sources(self, results: Sequence[SearchResult]) -> list[Source]:
        """First ``max_sources`` results with a unique, non-empty URL."""
        sources: list[Source] = []
        seen_urls: set[str] = set()
        for result in results:
            url = result.url.strip()
            if not url or url in seen_urls:
                continue
            seen_urls.add(url)
            sources.append(Source(title=base_title(result.title) or url, url=url))
            if len(sources) >= self._settings.max_sources:
                break
        return sources

    async def stream_reply(
        self,
        message: str,
        history: Sequence[ChatMessage] = (),
    ) -> AsyncIterator[StreamEvent]:
        """Yield the sources event, content fragments, or one error event.

        The sources event is emitted at most once and always before any
        content.  After an :class:`ErrorEvent` nothing else is yielded.
        """
        message = message.strip()
        if not message:
            yield ErrorEvent(message=UserInputInvalidError().message)
            return

        try:
            results = await self._retriever.search(message)
        except SiteChatError as exc:
            logger.error("chat_retrieval_failed", error=str(exc))
            yield ErrorEvent(message=APOLOGY_MESSAGE)
            return

        sources = self.collect_sources(results)
        if sources:
            yield SourcesEvent(sources=sources)

        system_prompt = self._prompt_for(message, results)
        fragments = 0
        try:
            async for fragment in self._completion.stream_complete(
                system_prompt, list(history), message
            ):
                fragments += 1
                yield ContentEvent(content=fragment)
        except SiteChatError as exc:
            logger.error("chat_stream_failed", error=str(exc), fragments=fragments)
            yield ErrorEvent(message=APOLOGY_MESSAGE)
            return

        logger.info("chat_stream_complete", fragments=fragments, sources=len(sources))

    async def reply(
        self,
        message: str,
        history: Sequence[ChatMessage] = (),
    ) -> ChatReply:
        """Non-streaming answer.

        Raises
        ------
        UserInputInvalidError
            If *message* is empty or whitespace.
        """
        message = message.strip()
        if not message:
            raise UserInputInvalidError()

        results = await self._retriever.search(message)
        sources = self.collect_sources(results)
        try:
            answer = await self._completion.complete(
                self._prompt_for(message, results), list(history), message
            )
        except SiteChatError as exc:
            logger.error("chat_reply_failed", error=str(exc))
            return ChatReply(message=APOLOGY_MESSAGE)
        return ChatReply(message=answer, sources=sources)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _prompt_for(self, message: str, results: Sequence[SearchResult]) -> str:
        focus = focus_keyword(message)
        context = self.build_context(results)
        logger.debug("chat_context_built", focus=focus, context_chars=len(context))
        return self.build_system_prompt(focus, context)
