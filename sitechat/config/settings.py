"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Settings are read from (in priority order):
#
#   1. **Environment variables** - e.g. SUPABASE_URL=https://xyz.supabase.co
#   2. **.env file** - key=value lines in the project root .env file
#   3. **config/config.yaml** - static defaults merged in by
#      :func:`sitechat.config.loader.load_settings`
#
# Field name ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.
#
# A Settings instance is built once at startup (main.py / the CLI) and
# passed into every provider and service constructor.  Nothing in the
# package reads configuration from a module-level global.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """sitechat application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === OpenAI (embeddings + chat completions) ===
    # Empty string = "not configured" → providers short-circuit to a
    # safe default instead of calling the API.
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_chat_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    # Inputs longer than this are truncated before embedding.
    embedding_max_chars: int = 25000
    completion_temperature: float = 0.7
    completion_max_tokens: int = 900
    history_limit: int = 10

    # === Supabase / PostgREST vector store ===
    supabase_url: str = ""
    supabase_api_key: str = ""
    supabase_table: str = "chatbot_embeddings"
    supabase_match_function: str = "match_embeddings"
    supabase_fuzzy_function: str = "fuzzy_search"
    http_timeout_seconds: float = 30.0

    # === Site ===
    # Namespace that partitions the shared store between sites.
    site_url: str = "http://localhost"

    # === CMS content source (WordPress REST API) ===
    cms_base_url: str = ""
    cms_username: str = ""
    cms_app_password: str = ""
    indexed_content_types: list[str] = Field(
        default_factory=lambda: ["post", "page", "product"]
    )

    # === Retrieval ===
    vector_match_threshold: float = 0.5
    relevance_min_overlap: float = 0.15
    # Targeted pricing searches returning at least this many rows skip the
    # vector / supplementation / listing stages.
    pricing_min_results: int = 2
    default_search_limit: int = 5
    max_sources: int = 3
    max_context_results: int = 3
    min_context_chars: int = 100
    contact_source_id: str = ""
    pricing_page_keyword: str = "Pricing"

    # === Indexing ===
    max_chunk_size: int = 6000
    chunk_overlap: int = 30
    min_chunk_chars: int = 50
    chunk_pause_seconds: float = 0.25
    item_pause_seconds: float = 0.5
    batch_item_pause_seconds: float = 0.3
    batch_cooldown_seconds: float = 2.0
    batch_size: int = 10
    progress_log_interval: int = 10
    auto_index: bool = True
    indexing_state_backend: str = "memory"  # "memory" or "sqlite"
    indexing_state_db_path: str = "data/indexing_state.db"
    indexing_state_ttl_seconds: int = 3600
    indexing_log_limit: int = 500

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    allowed_origins: list[str] = Field(default_factory=list)

    def is_openai_configured(self) -> bool:
        """Return True when an OpenAI API key is present."""
        return bool(self.openai_api_key)

    def is_store_configured(self) -> bool:
        """Return True when both the Supabase URL and API key are present."""
        return bool(self.supabase_url and self.supabase_api_key)
