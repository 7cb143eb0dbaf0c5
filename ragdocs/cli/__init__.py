"""Command-line tools for ragdocs.

- ``python -m ragdocs.cli ingest`` -- extract, chunk and embed local files
- ``python -m ragdocs.cli search`` -- semantic or hybrid search
- ``python -m ragdocs.cli stats`` -- an owner's document statistics
- ``python -m ragdocs.cli reap-stale`` -- fail documents stuck in processing
"""
