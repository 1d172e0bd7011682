"""Business logic services for sitechat.

- **extraction** -- flattens CMS items into plain text.
- **ingestion** -- chunking and the indexing orchestrator.
- **retrieval** -- intent rules, ranking filters and the hybrid retriever.
- **chat_service** -- context assembly and streamed answer generation.
"""
