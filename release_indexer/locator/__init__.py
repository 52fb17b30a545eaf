"""
Archive location module.

Resolves directories, files and URLs into local archive paths, downloading
remote archives into a local cache.
"""

from release_indexer.locator.archives import ArchiveLocator, ARCHIVE_NAME_RE, is_excluded
from release_indexer.locator.download import MirrorClient

__all__ = [
    "ArchiveLocator",
    "ARCHIVE_NAME_RE",
    "is_excluded",
    "MirrorClient",
]
