"""Hybrid retrieval: intent rules, ranking filters and the retriever."""

from sitechat.services.retrieval.hybrid_retriever import HybridRetriever
from sitechat.services.retrieval.intent import IntentClassifier, extract_query_pattern

__all__ = ["HybridRetriever", "IntentClassifier", "extract_query_pattern"]
