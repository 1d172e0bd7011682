"""Pure filters and orderings applied to a retrieval candidate pool.

Every function takes a list of :class:`~sitechat.models.rag.SearchResult`
and returns a new list; none of them touch the network, so the ranking
stages of :class:`~sitechat.services.retrieval.hybrid_retriever.HybridRetriever`
can be tested one at a time.

Stages, in the order the retriever applies them:

1. :func:`suppress_generic_pages` -- drop "About us" style pages.
2. :func:`dedupe_by_source` -- first occurrence of each source id wins.
3. :func:`filter_by_token_overlap` -- keep candidates that share enough
   query tokens, unless that would empty the pool.
4. :func:`prioritize_sections` -- service pages, then other pages, then
   blog posts.
5. :func:`order_multipart` -- parts of the same document in part order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from sitechat.models.rag import SearchResult
from sitechat.utils.text_normalizer import base_title, part_number, tokenize_query

logger = structlog.get_logger(logger_name=__name__)

_GENERIC_TITLE_RE = re.compile(r"about\s+us", re.IGNORECASE)
_GENERIC_URL_RE = re.compile(
    r"^https?://[^/]+/(about|about-us|resources|partnerships)/?$", re.IGNORECASE
)
_POST_URL_RE = re.compile(r"/(blog|news|posts?|articles?)(/|$)", re.IGNORECASE)

PRIORITY_KEYWORDS: tuple[str, ...] = (
    "services",
    "training",
    "compliance",
    "accessibility",
    "pricing",
    "resources",
    "partnership",
)

# Section ranks used by prioritize_sections
PRIORITY, NORMAL, POST = 0, 1, 2


def is_generic_page(result: SearchResult) -> bool:
    """True for "About us" titles and bare top-level about/resources pages."""
    return bool(
        _GENERIC_TITLE_RE.search(result.title) or _GENERIC_URL_RE.match(result.url.strip())
    )


def suppress_generic_pages(results: Iterable[SearchResult]) -> list[SearchResult]:
    kept: list[SearchResult] = []
    for result in results:
        if is_generic_page(result):
            logger.debug("generic_page_skipped", title=result.title, url=result.url)
            continue
        kept.append(result)
    return kept


def dedupe_key(result: SearchResult) -> str:
    """Identity used for de-duplication: source id, else URL, else row id."""
    return result.source_id or result.url or f"row:{result.id}"


def dedupe_by_source(results: Iterable[SearchResult]) -> list[SearchResult]:
    seen: set[str] = set()
    unique: list[SearchResult] = []
    for result in results:
        key = dedupe_key(result)
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
    return unique


def token_overlap(tokens: list[str], result: SearchResult) -> float:
    """Fraction of *tokens* found as substrings of the result's title or content."""
    if not tokens:
        return 0.0
    haystack = f"{result.title}\n{result.content}".lower()
    hits = sum(1 for token in tokens if token in haystack)
    return hits / len(tokens)


def filter_by_token_overlap(
    results: list[SearchResult],
    query: str,
    threshold: float = 0.15,
) -> list[SearchResult]:
    """Keep results whose token overlap with *query* is at least *threshold*.

    The filter is skipped (the input is returned unchanged) when the query
    has no content tokens or when no result would survive it.
    """
    tokens = tokenize_query(query)
    if not tokens or not results:
        return list(results)
    kept = [r for r in results if token_overlap(tokens, r) >= threshold]
    if not kept:
        logger.debug("overlap_filter_skipped", query=query, candidates=len(results))
        return list(results)
    return kept


def section_rank(result: SearchResult) -> int:
    """Return :data:`PRIORITY`, :data:`NORMAL` or :data:`POST` for *result*."""
    haystack = f"{result.url} {result.title}".lower()
    if any(keyword in haystack for keyword in PRIORITY_KEYWORDS):
        return PRIORITY
    if _POST_URL_RE.search(result.url):
        return POST
    return NORMAL


def prioritize_sections(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Stable sort by section rank; relevance order is kept within a rank."""
    return sorted(results, key=section_rank)


def order_multipart(results: list[SearchResult]) -> list[SearchResult]:
    """Put results sharing a base title into ascending part order.

    Only the relative order of same-document parts changes: the group keeps
    the slots its members already occupied in the list.
    """
    slots: dict[str, list[int]] = {}
    for index, result in enumerate(results):
        slots.setdefault(base_title(result.title).lower(), []).append(index)

    ordered = list(results)
    for positions in slots.values():
        if len(positions) < 2:
            continue
        members = sorted((results[i] for i in positions), key=lambda r: part_number(r.title))
        for position, member in zip(positions, members):
            ordered[position] = member
    return ordered
