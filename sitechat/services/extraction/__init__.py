"""Text extraction from CMS content items."""

from sitechat.services.extraction.text_extractor import TextExtractor

__all__ = ["TextExtractor"]
