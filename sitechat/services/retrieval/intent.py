"""Query intent rules and "X in Y" pattern extraction.

Intent is decided by an ordered list of regex rules; the first rule that
matches wins and anything unmatched is :attr:`Intent.GENERAL`.  Contact
comes before pricing so "who do I email about a quote" routes to the
contact page rather than the price list.

Pattern extraction reads questions of the form "price of X in Y" or
"benefit of X" into a :class:`~sitechat.models.rag.QueryPattern` so the
retriever can search the narrower context Y before the item X.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from sitechat.models.rag import Intent, QueryPattern

_CONTACT_RE = re.compile(
    r"\b(contact|reach|email|phone|support|connect|message|help|talk|touch)\b",
    re.IGNORECASE,
)
_PRICING_RE = re.compile(
    r"\b(price|prices|cost|costs|rate|rates|charge|charges|fee|fees|pricing|quote|amount)\b",
    re.IGNORECASE,
)
_SERVICES_RE = re.compile(
    r"\b(services?|offer|offerings?|provide|solutions?)\b",
    re.IGNORECASE,
)

# "price of X in Y", "pricing for X", "cost of X within Y"
_PRICING_PATTERN_RE = re.compile(
    r"\b(?:price|pricing|cost)\s+(?:of|for)\s+(?:the\s+|a\s+|an\s+)?(?P<item>.+?)"
    r"(?:\s+(?:in|within|under|on)\s+(?:the\s+)?(?P<context>.+?))?\s*[?.!]*$",
    re.IGNORECASE,
)
# "benefit(s) of X in Y"
_BENEFIT_PATTERN_RE = re.compile(
    r"\bbenefits?\s+of\s+(?:the\s+|a\s+|an\s+)?(?P<item>.+?)"
    r"(?:\s+(?:in|within|under|on)\s+(?:the\s+)?(?P<context>.+?))?\s*[?.!]*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class IntentRule:
    """One classification rule: *intent* applies when *pattern* matches."""

    intent: Intent
    pattern: re.Pattern[str]


DEFAULT_RULES: tuple[IntentRule, ...] = (
    IntentRule(Intent.CONTACT, _CONTACT_RE),
    IntentRule(Intent.PRICING, _PRICING_RE),
    IntentRule(Intent.SERVICES, _SERVICES_RE),
)


class IntentClassifier:
    """Maps a query to an :class:`Intent` using ordered regex rules.

    Parameters
    ----------
    rules:
        Rules evaluated in order; defaults to contact, pricing, services.
    """

    def __init__(self, rules: tuple[IntentRule, ...] = DEFAULT_RULES) -> None:
        self._rules = rules

    def classify(self, query: str) -> Intent:
        for rule in self._rules:
            if rule.pattern.search(query):
                return rule.intent
        return Intent.GENERAL


def extract_query_pattern(query: str) -> QueryPattern:
    """Pull the item (X) and optional context (Y) out of *query*.

    Returns an unmatched :class:`QueryPattern` (empty ``item``) when the
    query has neither a pricing nor a benefit shape.
    """
    text = " ".join(query.split())
    for kind, pattern in (("pricing", _PRICING_PATTERN_RE), ("benefit", _BENEFIT_PATTERN_RE)):
        match = pattern.search(text)
        if match is None:
            continue
        item = _clean_phrase(match.group("item"))
        context = _clean_phrase(match.group("context") or "")
        if item:
            return QueryPattern(kind=kind, item=item, context=context)
    return QueryPattern()


def _clean_phrase(phrase: str) -> str:
    return phrase.strip(" \t\"'?.!,").strip()
