"""Text helpers shared by retrieval, chat and indexing.

Three concerns live here:

1. **Query tokenization** -- lower-casing, punctuation stripping and a
   single stopword list, used by the relevance filter and by the focus
   keyword that goes into the system prompt.

2. **Keyword normalization** -- the crude suffix-stripping stemmer used
   as the second step of the keyword search cascade.  It is
   naive: "pricing" becomes "pric", which still matches "price" with an
   ``ilike`` substring filter.

3. **Part-suffix handling** -- chunk titles carry a "(Part i/n)" suffix;
   helpers strip it and read the part number.
"""

import re

STOPWORDS: frozenset[str] = frozenset(
    {
        "a", "about", "an", "and", "are", "can", "do", "does", "for", "have",
        "how", "in", "is", "me", "of", "offer", "on", "our", "please", "tell",
        "the", "to", "we", "what", "with", "you", "your",
    }
)

_WORD_RE = re.compile(r"[^\W_]+", re.UNICODE)
_NON_WORD_RE = re.compile(r"[^\w\s]|_", re.UNICODE)
_SUFFIX_RE = re.compile(r"(ing|ed|es|s|ly|er|est|tion|ions|ment|ments)$", re.IGNORECASE)
_PART_SUFFIX_RE = re.compile(r"\s*\(Part\s+(\d+)/(\d+)\)\s*$", re.IGNORECASE)


def tokenize_query(text: str) -> list[str]:
    """Split *text* into lower-case content tokens.

    Hyphens and punctuation separate words; stopwords and tokens of two
    characters or fewer are dropped.  Order is preserved and duplicates
    are removed.

    Args:
        text: Raw user query.

    Returns:
        Ordered, de-duplicated tokens.
    """
    tokens: list[str] = []
    for word in _WORD_RE.findall(text.lower()):
        if len(word) <= 2 or word in STOPWORDS or word in tokens:
            continue
        tokens.append(word)
    return tokens


def focus_keyword(text: str, max_words: int = 4) -> str:
    """Reduce a question to its subject: the first few content words.

    Falls back to the punctuation-stripped query when every word is a
    stopword (e.g. "what is it").
    """
    cleaned = _NON_WORD_RE.sub("", text.lower())
    words = [w for w in cleaned.split() if len(w) > 2 and w not in STOPWORDS]
    if not words:
        return " ".join(cleaned.split())
    return " ".join(words[:max_words])


def normalize_keyword(term: str) -> str:
    """Strip common English suffixes from every word of *term*.

    Non-alphanumerics become spaces, each word loses one trailing suffix
    from a fixed list, stems of two characters or fewer are dropped and
    the remaining stems are de-duplicated in order.

    >>> normalize_keyword("pricing services")
    'pric servic'
    """
    cleaned = " ".join(_NON_WORD_RE.sub(" ", term.lower()).split())
    stems: list[str] = []
    for word in cleaned.split(" "):
        stem = _SUFFIX_RE.sub("", word)
        if len(stem) > 2 and stem not in stems:
            stems.append(stem)
    return " ".join(stems)


def base_title(title: str) -> str:
    """Return *title* without a trailing "(Part i/n)" suffix."""
    return _PART_SUFFIX_RE.sub("", title).strip()


def part_number(title: str) -> int:
    """Return the part index from a "(Part i/n)" suffix, or 1 when absent."""
    match = _PART_SUFFIX_RE.search(title)
    return int(match.group(1)) if match else 1


def mentions(phrase: str, *haystacks: str) -> bool:
    """Case-insensitive substring test of *phrase* against any haystack."""
    needle = phrase.strip().lower()
    if not needle:
        return False
    return any(needle in (text or "").lower() for text in haystacks)
