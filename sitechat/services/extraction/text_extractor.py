"""Flatten a CMS content item into one plain-text document.

The extractor pulls every piece of textual signal out of a
:class:`~sitechat.models.content.ContentItem` so that prices in tables,
data sheets kept in custom fields and product attributes are all
searchable, not just the visible body copy.

Section order in the output::

    TITLE: ...
    EXCERPT: ...
    === TABLES DATA ===          (one "--- Table N ---" block per table)
    <body text, markup stripped>
    === ADDITIONAL DATA ===      (post meta, "Label: value")
    === CUSTOM FIELDS ===        (nested fields, "Parent - Child: value")
    === CATEGORIES & TAGS ===    ("Taxonomy: a, b")
    === PRODUCT INFORMATION ===  (commerce attributes)

Markup is parsed with BeautifulSoup's ``html.parser``.  Empty sections are
omitted; an item with nothing in any section extracts to an empty string.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog
from bs4 import BeautifulSoup

from sitechat.models.content import ContentItem, ProductInfo
from sitechat.models.rag import ExtractedDocument

logger = structlog.get_logger(logger_name=__name__)

TABLES_MARKER = "=== TABLES DATA ==="
METADATA_MARKER = "=== ADDITIONAL DATA ==="
CUSTOM_FIELDS_MARKER = "=== CUSTOM FIELDS ==="
TAXONOMY_MARKER = "=== CATEGORIES & TAGS ==="
PRODUCT_MARKER = "=== PRODUCT INFORMATION ==="

# Underscore-prefixed meta keys are internal, except the price fields.
_ALLOWED_PRIVATE_KEYS = frozenset({"_price", "_regular_price", "_sale_price"})
_RESERVED_KEYS = frozenset(
    {"_edit_lock", "_edit_last", "_wp_page_template", "_thumbnail_id", "_wp_old_slug"}
)

_MULTI_NEWLINE_RE = re.compile(r"\n{3,}")
_HORIZONTAL_WS_RE = re.compile(r"[ \t]+")


def _humanize(key: Any) -> str:
    """``"price_per_page"`` -> ``"Price per page"``."""
    label = str(key).strip("_").replace("_", " ")
    return label[:1].upper() + label[1:]


class TextExtractor:
    """Produce an :class:`ExtractedDocument` from a :class:`ContentItem`.

    Parameters
    ----------
    max_value_chars:
        Metadata values this long or longer are skipped (default 5000).
    """

    def __init__(self, max_value_chars: int = 5000) -> None:
        self._max_value_chars = max_value_chars

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, item: ContentItem) -> ExtractedDocument:
        """Flatten *item*; ``text`` is empty when there is nothing to index."""
        parts: list[str] = []

        title = item.title.strip()
        if title:
            parts.append(f"TITLE: {title}")

        excerpt = self.strip_markup(item.excerpt)
        if excerpt:
            parts.append(f"EXCERPT: {excerpt}")

        if item.body.strip():
            tables = self.extract_tables(item.body)
            if tables:
                parts.append(f"\n{TABLES_MARKER}\n{tables}")
            body = self.strip_markup(item.body)
            if body:
                parts.append(body)

        sections = (
            (METADATA_MARKER, self._render_metadata(item.metadata)),
            (CUSTOM_FIELDS_MARKER, "\n".join(self._render_custom_fields(item.custom_fields))),
            (TAXONOMY_MARKER, self._render_taxonomies(item.taxonomies)),
            (PRODUCT_MARKER, self._render_product(item.commerce)),
        )
        for marker, rendered in sections:
            if rendered:
                parts.append(f"\n{marker}\n{rendered}")

        text = "\n\n".join(parts)
        text = _MULTI_NEWLINE_RE.sub("\n\n", text)
        text = _HORIZONTAL_WS_RE.sub(" ", text).strip()

        if not text:
            logger.info("extraction_empty", source_id=item.id)
        return ExtractedDocument(source_id=item.id, title=title, url=item.url, text=text)

    # ------------------------------------------------------------------
    # Markup
    # ------------------------------------------------------------------

    @staticmethod
    def strip_markup(markup: str) -> str:
        """Remove tags (and script/style bodies), collapsing all whitespace."""
        if not markup or not markup.strip():
            return ""
        soup = BeautifulSoup(markup, "html.parser")
        for tag in soup(["script", "style"]):
            tag.decompose()
        return " ".join(soup.get_text(" ").split())

    def extract_tables(self, markup: str) -> str:
        """Serialize every ``<table>`` as ``" | "``-joined rows.

        Each table is introduced by ``--- Table N ---``; rows with no
        non-empty cells are dropped.
        """
        soup = BeautifulSoup(markup, "html.parser")
        blocks: list[str] = []
        for index, table in enumerate(soup.find_all("table"), start=1):
            lines = [f"--- Table {index} ---"]
            for row in table.find_all("tr"):
                cells = [
                    " ".join(cell.get_text(" ").split())
                    for cell in row.find_all(["th", "td"])
                ]
                cells = [c for c in cells if c]
                if cells:
                    lines.append(" | ".join(cells))
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    # ------------------------------------------------------------------
    # Structured sections
    # ------------------------------------------------------------------

    def _render_metadata(self, metadata: dict[str, Any]) -> str:
        lines: list[str] = []
        for key, values in metadata.items():
            if key.startswith("_") and key not in _ALLOWED_PRIVATE_KEYS:
                continue
            if key in _RESERVED_KEYS:
                continue
            for value in values if isinstance(values, list) else [values]:
                rendered = self._render_meta_value(value)
                if rendered and len(rendered) < self._max_value_chars:
                    lines.append(f"{_humanize(key)}: {rendered}")
        return "\n".join(lines)

    def _render_meta_value(self, value: Any) -> str:
        if isinstance(value, (bytes, bytearray)):
            return ""
        if isinstance(value, str):
            stripped = value.strip()
            if stripped[:1] in ("{", "["):
                try:
                    value = json.loads(stripped)
                except ValueError:
                    return stripped
            else:
                return stripped
        if isinstance(value, (dict, list)):
            return self._flatten_inline(value)
        if value is None:
            return ""
        return str(value).strip()

    def _flatten_inline(self, value: Any) -> str:
        """Render a decoded structure as ``key: value, key: value``."""
        if isinstance(value, dict):
            pairs = (f"{_humanize(k)}: {self._flatten_inline(v)}" for k, v in value.items())
            return ", ".join(p for p in pairs if not p.endswith(": "))
        if isinstance(value, list):
            return ", ".join(filter(None, (self._flatten_inline(v) for v in value)))
        return "" if value is None else str(value).strip()

    def _render_custom_fields(self, fields: Any, prefix: str = "") -> list[str]:
        if isinstance(fields, list):
            fields = dict(enumerate(fields))
        if not isinstance(fields, dict):
            return []
        lines: list[str] = []
        for key, value in fields.items():
            label = prefix + _humanize(key)
            if isinstance(value, (dict, list)):
                lines.extend(self._render_custom_fields(value, f"{label} - "))
            elif isinstance(value, bool):
                lines.append(f"{label}: {'Yes' if value else 'No'}")
            elif value is not None:
                rendered = self.strip_markup(str(value)) if "<" in str(value) else str(value).strip()
                if rendered:
                    lines.append(f"{label}: {rendered}")
        return lines

    @staticmethod
    def _render_taxonomies(taxonomies: dict[str, list[str]]) -> str:
        lines = []
        for taxonomy, terms in taxonomies.items():
            names = [t.strip() for t in terms if t and t.strip()]
            if names:
                lines.append(f"{_humanize(taxonomy)}: {', '.join(names)}")
        return "\n".join(lines)

    def _render_product(self, product: ProductInfo | None) -> str:
        if product is None or product.is_empty():
            return ""
        symbol = product.currency_symbol
        lines: list[str] = []
        if product.product_type:
            lines.append(f"Product Type: {product.product_type}")
        if product.price:
            lines.append(f"Price: {symbol}{product.price}")
        if product.regular_price:
            lines.append(f"Regular Price: {symbol}{product.regular_price}")
        if product.on_sale and product.sale_price:
            lines.append(f"Sale Price: {symbol}{product.sale_price}")
        if product.sku:
            lines.append(f"SKU: {product.sku}")
        if product.stock_status:
            lines.append(f"Stock Status: {product.stock_status}")
        description = self.strip_markup(product.short_description)
        if description:
            lines.append(f"Short Description: {description}")
        if product.attributes:
            lines.append("\nProduct Attributes:")
            lines.extend(
                f"{name}: {', '.join(options)}" for name, options in product.attributes.items()
            )
        return "\n".join(lines)
