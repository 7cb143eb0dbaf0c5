"""Concrete adapters for the ragdocs interfaces.

- **embedding/** -- IEmbeddingProvider implementations (OpenAI)
- **store/** -- IDocumentStore implementations (SQLite, in-memory)
"""
