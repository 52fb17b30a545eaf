"""
Shared data models module.

Provides the records that flow through the import pipeline:
- Archive identities parsed from paths and URLs
- File, module and release documents
- Release metadata (META.json)
"""

from release_indexer.models.identity import (
    ArchiveIdentity,
    parse_distname,
    distname_info,
    author_dir,
    numify_version
)
from release_indexer.models.documents import (
    ModuleRecord,
    FileRecord,
    NoIndex,
    ReleaseMetadata,
    ReleaseDocument
)

__all__ = [
    "ArchiveIdentity",
    "parse_distname",
    "distname_info",
    "author_dir",
    "numify_version",
    "ModuleRecord",
    "FileRecord",
    "NoIndex",
    "ReleaseMetadata",
    "ReleaseDocument",
]
