"""Fixed-size character chunking with a small overlap.

Splits extracted document text into :class:`~sitechat.models.rag.Chunk`
objects for embedding.

The strategy is mechanical:

1. **Short documents stay whole** -- text up to ``max_chunk_size``
   characters becomes a single chunk, verbatim.  Extracted text already
   starts with its ``TITLE:`` line.

2. **Long documents slide a window** -- windows of ``max_chunk_size``
   characters advance by ``max_chunk_size - overlap`` until a window
   reaches the end of the text.  The overlap is tens of characters: enough
   that a sentence is never cut exactly on a boundary, not an attempt at
   semantic continuity.  Every window is prefixed ``"Title: {title}\\n\\n"``
   so a part read on its own still says which document it came from, and
   titles are suffixed "(Part i/n)".

For text longer than the window the chunk count is
``ceil((len(text) - overlap) / (max_chunk_size - overlap))``.
"""

from __future__ import annotations

import structlog

from sitechat.models.rag import Chunk

logger = structlog.get_logger(logger_name=__name__)


class CharacterChunker:
    """Splits text into overlapping fixed-size character windows.

    Parameters
    ----------
    max_chunk_size:
        Maximum characters per window (default 6000).
    overlap:
        Characters shared by consecutive windows (default 30).
    """

    def __init__(self, max_chunk_size: int = 6000, overlap: int = 30) -> None:
        if overlap >= max_chunk_size:
            msg = f"overlap ({overlap}) must be smaller than max_chunk_size ({max_chunk_size})"
            raise ValueError(msg)
        self._max_chunk_size = max_chunk_size
        self._overlap = overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(
        self,
        text: str,
        title: str,
        *,
        source_id: str = "",
        url: str = "",
    ) -> list[Chunk]:
        """Split *text* into ordered :class:`Chunk` objects.

        Parameters
        ----------
        text:
            Extracted document text.
        title:
            Document title used for the prefix and the part suffix.
        source_id, url:
            Copied into every chunk.

        Returns
        -------
        list[Chunk]
            Chunks in document order.  Empty input returns an empty list.
        """
        if not text or not text.strip():
            return []

        if len(text) <= self._max_chunk_size:
            return [
                Chunk(
                    source_id=source_id,
                    chunk_index=0,
                    chunk_count=1,
                    title=title,
                    url=url,
                    text=text,
                    body=text,
                )
            ]

        windows = self._windows(text)
        count = len(windows)
        prefix = f"Title: {title}\n\n"
        chunks = [
            Chunk(
                source_id=source_id,
                chunk_index=index,
                chunk_count=count,
                title=f"{title} (Part {index + 1}/{count})",
                url=url,
                text=prefix + window,
                body=window,
            )
            for index, window in enumerate(windows)
        ]
        logger.debug(
            "text_chunked",
            source_id=source_id,
            chars=len(text),
            chunks=count,
        )
        return chunks

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _windows(self, text: str) -> list[str]:
        step = self._max_chunk_size - self._overlap
        windows: list[str] = []
        start = 0
        while True:
            end = start + self._max_chunk_size
            windows.append(text[start:end])
            if end >= len(text):
                return windows
            start += step
