"""In-process registry of content change/delete handlers.

Content sources compose a :class:`ContentEventHub` to implement the
subscription half of :class:`~sitechat.interfaces.content_source.IContentSource`.
Handlers run sequentially in registration order; a failing handler is
logged and does not stop the others.
"""

from __future__ import annotations

import structlog

from sitechat.interfaces.content_source import ContentHandler

logger = structlog.get_logger(logger_name=__name__)


class ContentEventHub:
    def __init__(self) -> None:
        self._changed: list[ContentHandler] = []
        self._deleted: list[ContentHandler] = []

    def on_changed(self, handler: ContentHandler) -> None:
        self._changed.append(handler)

    def on_deleted(self, handler: ContentHandler) -> None:
        self._deleted.append(handler)

    async def emit_changed(self, item_id: str) -> None:
        await self._dispatch("changed", self._changed, item_id)

    async def emit_deleted(self, item_id: str) -> None:
        await self._dispatch("deleted", self._deleted, item_id)

    @staticmethod
    async def _dispatch(event: str, handlers: list[ContentHandler], item_id: str) -> None:
        logger.info("content_event", content_event=event, item_id=item_id, handlers=len(handlers))
        for handler in handlers:
            try:
                await handler(item_id)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "content_event_handler_failed",
                    content_event=event,
                    item_id=item_id,
                    error=str(exc),
                )
