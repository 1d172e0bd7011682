"""WordPress REST API content source.

Reads posts and pages from ``/wp-json/wp/v2`` and products from the
WooCommerce Store API (``/wp-json/wc/store/v1/products``), mapping each
record to a :class:`~sitechat.models.content.ContentItem`.

- Taxonomy terms come from the ``_embed`` payload (``wp:term``).
- Post meta comes from the ``meta`` field (only keys registered with
  ``show_in_rest`` are exposed).
- Custom fields come from the ``acf`` field when ACF exposes it.

When an application password is configured requests are authenticated
with HTTP basic auth and ``context=edit``, which also reveals drafts so
the indexer can tell "not published" apart from "not found".
"""

from __future__ import annotations

import html
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from sitechat.config.settings import Settings
from sitechat.interfaces.content_source import ContentHandler, IContentSource
from sitechat.models.content import ContentItem, ProductInfo
from sitechat.providers.content.event_hub import ContentEventHub
from sitechat.utils.errors import TransportFailureError

logger = structlog.get_logger(logger_name=__name__)

_PER_PAGE = 100

# content type -> REST collection path
_COLLECTIONS: dict[str, str] = {
    "post": "wp/v2/posts",
    "page": "wp/v2/pages",
    "product": "wc/store/v1/products",
}


class WordPressContentSource(IContentSource):
    """Content source backed by a WordPress site's REST API."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (settings.cms_base_url or settings.site_url).rstrip("/")
        self._auth: httpx.BasicAuth | None = None
        if settings.cms_username and settings.cms_app_password:
            self._auth = httpx.BasicAuth(settings.cms_username, settings.cms_app_password)
        # The client may be shared with other providers, so credentials go
        # on each request rather than on the client.
        self._http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        self._events = ContentEventHub()

    # ------------------------------------------------------------------
    # Reading content
    # ------------------------------------------------------------------

    async def list_published_ids(self, content_types: Sequence[str]) -> list[str]:
        ids: list[str] = []
        for content_type in content_types:
            collection = _COLLECTIONS.get(content_type)
            if collection is None:
                logger.warning("wordpress_unknown_content_type", content_type=content_type)
                continue
            try:
                ids.extend(await self._list_collection_ids(content_type, collection))
            except TransportFailureError as exc:
                logger.error(
                    "wordpress_list_failed", content_type=content_type, error=str(exc)
                )
        logger.info("wordpress_published_ids", total=len(ids))
        return ids

    async def get_item(self, item_id: str) -> ContentItem | None:
        for content_type, collection in _COLLECTIONS.items():
            try:
                data = await self._get_json(f"{collection}/{item_id}", self._item_params(content_type))
            except TransportFailureError as exc:
                logger.warning("wordpress_get_failed", item_id=item_id, error=str(exc))
                return None
            if data is None:
                continue
            if content_type == "product":
                return self._map_product(data)
            return self._map_post(data, content_type)
        return None

    async def resolve_url(self, item_id: str) -> str:
        item = await self.get_item(item_id)
        return item.url if item else ""

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_content_changed(self, handler: ContentHandler) -> None:
        self._events.on_changed(handler)

    def on_content_deleted(self, handler: ContentHandler) -> None:
        self._events.on_deleted(handler)

    async def notify_changed(self, item_id: str) -> None:
        await self._events.emit_changed(item_id)

    async def notify_deleted(self, item_id: str) -> None:
        await self._events.emit_deleted(item_id)

    def get_provider_name(self) -> str:
        return "wordpress"

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _item_params(self, content_type: str) -> dict[str, Any]:
        if content_type == "product":
            return {}
        params: dict[str, Any] = {"_embed": "wp:term"}
        if self._auth is not None:
            params["context"] = "edit"
        return params

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        """GET one REST path; ``None`` when the path is not visible to us.

        404 means no such record in this collection.  401 and 403 mean the
        record exists but is not public (a draft or private post read
        without credentials).

        Raises:
            TransportFailureError: On network errors or other non-200 codes.
        """
        try:
            response = await self._http.get(
                f"{self._base_url}/wp-json/{path}", params=params, auth=self._auth
            )
        except httpx.HTTPError as exc:
            raise TransportFailureError(
                message=f"GET {path} failed: {exc}", provider_name=self.get_provider_name()
            ) from exc
        if response.status_code in (401, 403, 404):
            if response.status_code != 404:
                logger.info("wordpress_not_visible", path=path, status=response.status_code)
            return None
        if response.status_code != 200:
            raise TransportFailureError(
                message=f"GET {path} returned HTTP {response.status_code}",
                provider_name=self.get_provider_name(),
            )
        return response.json()

    async def _list_collection_ids(self, content_type: str, collection: str) -> list[str]:
        ids: list[str] = []
        page = 1
        while True:
            params: dict[str, Any] = {"per_page": _PER_PAGE, "page": page}
            if content_type != "product":
                params.update({"status": "publish", "_fields": "id"})
            batch = await self._get_json(collection, params) or []
            ids.extend(str(entry["id"]) for entry in batch if "id" in entry)
            if len(batch) < _PER_PAGE:
                return ids
            page += 1

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _rendered(field: Any, prefer_raw: bool = False) -> str:
        """Read a ``{"raw", "rendered"}`` field.

        Body and excerpt use ``rendered``: ``raw`` is block and shortcode
        source, so tables produced by shortcodes would never appear.
        """
        if isinstance(field, dict):
            keys = ("raw", "rendered") if prefer_raw else ("rendered", "raw")
            return field.get(keys[0]) or field.get(keys[1]) or ""
        return field or ""

    def _map_post(self, data: dict, content_type: str) -> ContentItem:
        taxonomies: dict[str, list[str]] = {}
        for group in (data.get("_embedded") or {}).get("wp:term", []):
            for term in group or []:
                name = term.get("name")
                if name:
                    taxonomies.setdefault(term.get("taxonomy", "term"), []).append(html.unescape(name))

        acf = data.get("acf")
        return ContentItem(
            id=str(data["id"]),
            title=html.unescape(self._rendered(data.get("title"), prefer_raw=True)),
            body=self._rendered(data.get("content")),
            excerpt=self._rendered(data.get("excerpt")),
            metadata=data.get("meta") if isinstance(data.get("meta"), dict) else {},
            custom_fields=acf if isinstance(acf, dict) else {},
            taxonomies=taxonomies,
            status=data.get("status", "publish"),
            url=data.get("link", ""),
            content_type=content_type,
        )

    def _map_product(self, data: dict) -> ContentItem:
        prices = data.get("prices") or {}
        minor_unit = int(prices.get("currency_minor_unit", 2) or 0)

        def _price(key: str) -> str:
            raw = prices.get(key)
            if raw in (None, ""):
                return ""
            return f"{int(raw) / 10**minor_unit:.{minor_unit}f}"

        stock = data.get("stock_availability") or {}
        attributes = {
            attr.get("name", ""): [t.get("name", "") for t in attr.get("terms") or []]
            for attr in data.get("attributes") or []
            if attr.get("name")
        }
        taxonomies: dict[str, list[str]] = {}
        for taxonomy, key in (("product_cat", "categories"), ("product_tag", "tags")):
            names = [html.unescape(t["name"]) for t in data.get(key) or [] if t.get("name")]
            if names:
                taxonomies[taxonomy] = names

        commerce = ProductInfo(
            product_type=data.get("type", ""),
            price=_price("price"),
            regular_price=_price("regular_price"),
            sale_price=_price("sale_price"),
            on_sale=bool(data.get("on_sale")),
            sku=data.get("sku", ""),
            stock_status=stock.get("class") or ("instock" if data.get("is_in_stock") else ""),
            short_description=data.get("short_description", ""),
            attributes=attributes,
            currency_symbol=prices.get("currency_symbol") or "$",
        )
        # The Store API only serves purchasable, published products.
        return ContentItem(
            id=str(data["id"]),
            title=html.unescape(data.get("name", "")),
            body=data.get("description", ""),
            taxonomies=taxonomies,
            commerce=commerce,
            status="publish",
            url=data.get("permalink", ""),
            content_type="product",
        )
