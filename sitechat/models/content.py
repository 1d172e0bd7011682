"""CMS content models consumed by the indexing pipeline.

A :class:`ContentItem` is the read-only view of one CMS record (post, page
or product) as delivered by an
:class:`~sitechat.interfaces.content_source.IContentSource`.  The text
extractor turns it into an
:class:`~sitechat.models.rag.ExtractedDocument`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProductInfo(BaseModel):
    """Commerce attributes of a sellable product.

    Prices are kept as display strings exactly as the shop renders them,
    so no currency arithmetic happens in the chat layer.
    """

    model_config = ConfigDict(frozen=True)

    product_type: str = Field(default="", description='Shop product type, e.g. "simple".')
    price: str = Field(default="", description="Current (effective) price.")
    regular_price: str = Field(default="", description="List price before discounts.")
    sale_price: str = Field(default="", description="Discounted price, when on sale.")
    on_sale: bool = Field(default=False, description="Whether the sale price applies.")
    sku: str = Field(default="", description="Stock keeping unit.")
    stock_status: str = Field(default="", description='e.g. "instock", "outofstock".')
    short_description: str = Field(default="", description="Short description (HTML).")
    attributes: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Attribute name to option values, e.g. {'Format': ['PDF', 'Word']}.",
    )
    currency_symbol: str = Field(default="$", description="Prefix used when rendering prices.")

    def is_empty(self) -> bool:
        """Return True when no field carries any information."""
        return not any(
            (
                self.product_type,
                self.price,
                self.regular_price,
                self.sale_price,
                self.sku,
                self.stock_status,
                self.short_description,
                self.attributes,
            )
        )


class ContentItem(BaseModel):
    """One CMS record, as seen by the indexer."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="CMS identifier of the item.")
    title: str = Field(default="", description="Item title (plain text).")
    body: str = Field(default="", description="Rendered body HTML.")
    excerpt: str = Field(default="", description="Manual excerpt, plain text or HTML.")
    # Raw post meta: values may be strings, numbers, nested structures or
    # JSON-encoded strings of nested structures.
    metadata: dict[str, Any] = Field(default_factory=dict)
    # Plugin-supplied structured fields (e.g. ACF groups), arbitrarily nested.
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    taxonomies: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Taxonomy name to term names, e.g. {'category': ['News']}.",
    )
    commerce: ProductInfo | None = Field(default=None)
    status: str = Field(default="publish", description='CMS publish status, e.g. "publish".')
    url: str = Field(default="", description="Canonical public URL.")
    content_type: str = Field(default="post", description='"post", "page" or "product".')

    @property
    def is_published(self) -> bool:
        return self.status == "publish"
