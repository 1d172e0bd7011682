"""CMS content source adapters."""

from sitechat.providers.content.event_hub import ContentEventHub
from sitechat.providers.content.wordpress_provider import WordPressContentSource

__all__ = ["ContentEventHub", "WordPressContentSource"]
