"""Vector store provider implementations.

    - SupabaseVectorStore - pgvector table behind Supabase's PostgREST API.
"""

from sitechat.providers.vector_store.supabase_provider import SupabaseVectorStore

__all__ = ["SupabaseVectorStore"]
