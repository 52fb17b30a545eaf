"""
release-indexer: ingestion front-end of a package search index.

Turns release archives (directories, files or URLs) into release and file
documents with their abstract, documentation ownership, authorization and
provided module names.

Modules:
    locator: Archive discovery and downloads
    feeds: Permissions and BackPAN indexes from offline mirror feeds
    ingestion: Release models, document building and import orchestration
    storage: SQLite search index and batched writes
    utils: Configuration, logging, errors, common utilities
    models: Shared document models
"""

__version__ = "0.1.0"

from release_indexer import feeds, ingestion, locator, models, storage, utils

__all__ = [
    "feeds",
    "ingestion",
    "locator",
    "models",
    "storage",
    "utils",
    "__version__",
]
