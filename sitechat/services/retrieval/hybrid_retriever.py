"""Hybrid retrieval: vector similarity, keyword matching and intent rules.

The :class:`HybridRetriever` turns a free-text question into a ranked,
de-duplicated list of :class:`~sitechat.models.rag.SearchResult` passages.

Candidate gathering (first stage that applies wins the lead of the pool):

1. **Contact** questions short-circuit to the designated contact item.
2. **Targeted patterns** -- "price of X in Y" searches Y first and keeps
   the rows that mention X; "price of X" searches the pricing page for X.
   Enough targeted hits skip the broad stages entirely.
3. **Vector search** on the query embedding, scoped to the site.
4. **Intent supplementation** -- pricing and services questions merge in
   keyword hits for their section words.
5. **Fallback listings** when the pool is still empty.

The pool is then ranked by :mod:`sitechat.services.retrieval.ranking` and
capped.  When everything yields nothing the most recently indexed rows (or
one placeholder for an empty corpus) are returned, so :meth:`search` is
total: it never raises for "no match".

Every stage catches its own provider failure and contributes nothing
rather than aborting the search.
"""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from typing import TYPE_CHECKING

import structlog

from sitechat.models.rag import Intent, QueryPattern, SearchResult, SearchScope
from sitechat.services.retrieval import ranking
from sitechat.services.retrieval.intent import IntentClassifier, extract_query_pattern
from sitechat.utils.errors import SiteChatError
from sitechat.utils.text_normalizer import focus_keyword, mentions, normalize_keyword

if TYPE_CHECKING:
    from sitechat.config.settings import Settings
    from sitechat.interfaces.embedding_provider import IEmbeddingProvider
    from sitechat.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

KEYWORD_SCORE_START = 0.55
LISTING_SCORE_START = 0.7
RECENT_SCORE_START = 0.3
SCORE_STEP = 0.05
CONTACT_SCORE = 4.0

PLACEHOLDER_RESULT = SearchResult(
    title="Ask me about this site",
    content=(
        "No content has been indexed for this site yet. "
        "Ask me about the services, pages and articles published here."
    ),
    similarity=0.0,
)

# (term, k) keyword lookups merged into the pool for an intent
_SUPPLEMENT_TERMS: dict[Intent, tuple[tuple[str, int], ...]] = {
    Intent.PRICING: (("pricing", 6), ("service", 6)),
    Intent.SERVICES: (("services", 8),),
}


def _rescore(results: Sequence[SearchResult], start: float) -> list[SearchResult]:
    """Assign descending synthetic scores ``start - i * 0.05`` in list order."""
    return [
        result.model_copy(update={"similarity": round(start - i * SCORE_STEP, 4)})
        for i, result in enumerate(results)
    ]


class HybridRetriever:
    """Multi-stage retrieval over the site's vector store.

    Parameters
    ----------
    embedding_provider:
        Embeds the query (and targeted item phrases) for vector search.
    vector_store:
        The namespace-partitioned embeddings store.
    settings:
        Namespace (``site_url``), thresholds and limits.
    classifier:
        Intent rules; defaults to the contact/pricing/services rule set.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        settings: Settings,
        classifier: IntentClassifier | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._settings = settings
        self._namespace = settings.site_url
        self._classifier = classifier or IntentClassifier()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(
        self,
        query_text: str,
        query_embedding: Sequence[float] | None = None,
        limit: int | None = None,
        intent: Intent | None = None,
    ) -> list[SearchResult]:
        """Return up to *limit* ranked passages for *query_text*.

        Parameters
        ----------
        query_text:
            The user's question.
        query_embedding:
            Pre-computed query vector; embedded on demand when omitted.
        limit:
            Maximum results (``default_search_limit`` when omitted).
        intent:
            Overrides the classifier's decision.

        Returns
        -------
        list[SearchResult]
            Never empty: falls back to recent rows or a placeholder.
        """
        limit = limit or self._settings.default_search_limit
        query = " ".join(query_text.split())
        intent = intent or self._classifier.classify(query)
        logger.info("retrieval_started", intent=intent.value, limit=limit)

        if intent is Intent.CONTACT:
            contact = await self._contact_lookup()
            if contact:
                logger.info("retrieval_contact_hit", source_id=contact[0].source_id)
                return contact

        pool = await self._targeted_search(query, intent)
        if len(pool) < self._settings.pricing_min_results:
            pool.extend(await self._vector_stage(query, query_embedding, limit))
            pool.extend(await self._supplement(intent))
            if not pool:
                pool = await self._fallback_listing(query, limit)
        else:
            logger.info("retrieval_targeted_sufficient", hits=len(pool))

        ranked = self._rank(pool, query)[:limit]
        if not ranked:
            ranked = await self._last_resort(limit)

        logger.info(
            "retrieval_complete",
            intent=intent.value,
            candidates=len(pool),
            returned=len(ranked),
        )
        return ranked

    async def keyword_lookup(
        self,
        term: str,
        k: int = 10,
        scope: SearchScope = SearchScope.BOTH,
    ) -> list[SearchResult]:
        """Keyword cascade: direct substring, then stems, then fuzzy match.

        The first step that returns rows wins.  Rows are de-duplicated by
        URL and scored ``0.55 - i * 0.05``.
        """
        clean = term.strip().lower()
        if not clean:
            return []

        rows = await self._guard(
            "keyword_direct",
            self._vector_store.keyword_search(clean, scope, k, self._namespace),
        )
        if not rows:
            normalized = normalize_keyword(clean)
            if normalized and normalized != clean:
                rows = await self._guard(
                    "keyword_normalized",
                    self._vector_store.keyword_search(normalized, scope, k, self._namespace),
                )
        if not rows:
            rows = await self._guard(
                "keyword_fuzzy", self._vector_store.fuzzy_search(clean, k, scope)
            )

        seen_urls: set[str] = set()
        unique: list[SearchResult] = []
        for row in rows:
            if row.url in seen_urls:
                continue
            seen_urls.add(row.url)
            unique.append(row)
        logger.debug("keyword_lookup", term=clean, hits=len(unique))
        return _rescore(unique, KEYWORD_SCORE_START)

    # ------------------------------------------------------------------
    # Candidate stages
    # ------------------------------------------------------------------

    async def _contact_lookup(self) -> list[SearchResult]:
        source_id = self._settings.contact_source_id
        if not source_id:
            return []
        rows = await self._guard(
            "contact",
            self._vector_store.get_by_source_id(source_id, self._namespace),
        )
        if not rows:
            return []
        return [rows[0].model_copy(update={"similarity": CONTACT_SCORE})]

    async def _targeted_search(self, query: str, intent: Intent) -> list[SearchResult]:
        pattern = extract_query_pattern(query)
        if not pattern.matched and intent is Intent.PRICING:
            pattern = QueryPattern(kind="pricing", item=focus_keyword(query))
        if not pattern.matched:
            return []

        logger.info(
            "retrieval_pattern",
            kind=pattern.kind,
            item=pattern.item,
            context=pattern.context,
        )
        if pattern.context:
            scoped = await self.keyword_lookup(pattern.context, 5)
            hits = self._mentioning(scoped, pattern.item)
            if hits:
                return hits
            return await self._item_search(pattern.item)

        if pattern.kind == "pricing":
            pricing_page = await self.keyword_lookup(self._settings.pricing_page_keyword, 5)
            hits = self._mentioning(pricing_page, pattern.item)
            if hits:
                return hits
            hits = await self.keyword_lookup(pattern.item, 10)
            return hits or pricing_page

        return await self._item_search(pattern.item)

    async def _item_search(self, item: str) -> list[SearchResult]:
        hits = await self.keyword_lookup(item, 10)
        if hits:
            return hits
        return await self._vector_stage(item, None, 10)

    async def _vector_stage(
        self,
        text: str,
        embedding: Sequence[float] | None,
        limit: int,
    ) -> list[SearchResult]:
        if embedding is None:
            try:
                embedding = await self._embedding_provider.embed(text)
            except SiteChatError as exc:
                logger.warning("retrieval_embedding_failed", error=str(exc))
                return []
        hits = await self._guard(
            "vector",
            self._vector_store.similarity_search(embedding, limit, self._namespace),
        )
        logger.debug("retrieval_vector_hits", hits=len(hits))
        return hits

    async def _supplement(self, intent: Intent) -> list[SearchResult]:
        extra: list[SearchResult] = []
        for term, k in _SUPPLEMENT_TERMS.get(intent, ()):
            extra.extend(await self.keyword_lookup(term, k))
        if extra:
            logger.debug("retrieval_supplemented", intent=intent.value, hits=len(extra))
        return extra

    async def _fallback_listing(self, query: str, limit: int) -> list[SearchResult]:
        for namespace in (self._namespace, None):
            rows = await self._guard(
                "listing", self._vector_store.list_rows(limit, namespace)
            )
            if rows:
                logger.info("retrieval_listing_fallback", scoped=namespace is not None)
                return _rescore(rows, LISTING_SCORE_START)
        return await self.keyword_lookup(query, limit)

    async def _last_resort(self, limit: int) -> list[SearchResult]:
        rows = await self._guard(
            "recent", self._vector_store.recent_rows(limit, self._namespace)
        )
        if rows:
            logger.info("retrieval_last_resort", rows=len(rows))
            return _rescore(rows, RECENT_SCORE_START)
        logger.warning("retrieval_empty_corpus")
        return [PLACEHOLDER_RESULT]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _rank(self, pool: list[SearchResult], query: str) -> list[SearchResult]:
        results = ranking.suppress_generic_pages(pool)
        results = ranking.dedupe_by_source(results)
        results = ranking.filter_by_token_overlap(
            results, query, self._settings.relevance_min_overlap
        )
        results = ranking.prioritize_sections(results)
        return ranking.order_multipart(results)

    @staticmethod
    def _mentioning(results: list[SearchResult], phrase: str) -> list[SearchResult]:
        return [r for r in results if mentions(phrase, r.title, r.content)]

    @staticmethod
    async def _guard(stage: str, call: Awaitable[list[SearchResult]]) -> list[SearchResult]:
        try:
            return await call
        except SiteChatError as exc:
            logger.warning("retrieval_stage_failed", stage=stage, error=str(exc))
            return []
