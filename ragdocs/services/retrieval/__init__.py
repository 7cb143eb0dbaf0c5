from ragdocs.services.retrieval.keywords import extract_keywords
from ragdocs.services.retrieval.search_service import SearchService

__all__ = ["SearchService", "extract_keywords"]
