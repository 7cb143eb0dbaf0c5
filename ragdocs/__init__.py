"""ragdocs: document ingestion and retrieval for retrieval-augmented generation.

Uploaded files are extracted, chunked, embedded and stored; semantic and
hybrid search then return the excerpts most relevant to a question.
"""

__version__ = "0.1.0"
