"""Abstract base class for the CMS content source.

The content source is how the indexer sees the CMS: it enumerates
published items, fetches one item by id, resolves canonical URLs, and
lets interested parties subscribe to change and delete events instead of
hooking into the CMS directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from sitechat.models.content import ContentItem

# Event handlers receive the id of the item that changed or was deleted.
ContentHandler = Callable[[str], Awaitable[Any]]


# Concrete implementations: WordPressContentSource
# Located in: sitechat/providers/content/
class IContentSource(ABC):
    """Contract for reading CMS content and receiving its change events."""

    @abstractmethod
    async def list_published_ids(self, content_types: Sequence[str]) -> list[str]:
        """Return ids of every published item of the given content types.

        Parameters
        ----------
        content_types:
            CMS content types to enumerate, e.g. ``["post", "page"]``.

        Returns
        -------
        list[str]
            Item ids; order is stable between calls.
        """

    @abstractmethod
    async def get_item(self, item_id: str) -> ContentItem | None:
        """Fetch one item by id, or ``None`` when it does not exist."""

    @abstractmethod
    async def resolve_url(self, item_id: str) -> str:
        """Return the canonical public URL of an item (``""`` if unknown)."""

    @abstractmethod
    def on_content_changed(self, handler: ContentHandler) -> None:
        """Register *handler* to run when an item is created or updated."""

    @abstractmethod
    def on_content_deleted(self, handler: ContentHandler) -> None:
        """Register *handler* to run when an item is deleted."""

    @abstractmethod
    async def notify_changed(self, item_id: str) -> None:
        """Dispatch an item-changed event to every registered handler."""

    @abstractmethod
    async def notify_deleted(self, item_id: str) -> None:
        """Dispatch an item-deleted event to every registered handler."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"wordpress"``."""
