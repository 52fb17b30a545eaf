"""
Storage layer for the release search index.

Provides the SQLite-backed document index and the batched writer used
while importing releases.
"""

from release_indexer.storage.bulk import BulkIndexer
from release_indexer.storage.index import IndexedDocument, SQLiteSearchIndex

__all__ = [
    "BulkIndexer",
    "IndexedDocument",
    "SQLiteSearchIndex",
]
