"""
Common utilities module.

Provides shared utilities:
- Configuration (Pydantic Settings-based)
- Logging (structured logging with secret masking)
- Exception hierarchy
- gzip feed readers and archive checksums
"""

from release_indexer.utils.config import (
    ImportConfig,
    MirrorConfig,
    StorageConfig,
    PurgeConfig,
    ReleaseIndexerSettings,
    get_settings,
    load_config_from_dict
)
from release_indexer.utils.logger import get_logger, set_level
from release_indexer.utils.errors import (
    ReleaseIndexerError,
    ArchiveAcquisitionError,
    FeedUnavailableError,
    ReleaseModelError,
    UnsupportedArchiveError,
    IndexCommitError,
    CachePurgeError
)
from release_indexer.utils.compression import iter_gzip_lines, iter_text_lines, read_gzip_bytes
from release_indexer.utils.hashing import compute_checksum

__all__ = [
    # Config
    "ImportConfig",
    "MirrorConfig",
    "StorageConfig",
    "PurgeConfig",
    "ReleaseIndexerSettings",
    "get_settings",
    "load_config_from_dict",
    # Logging
    "get_logger",
    "set_level",
    # Errors
    "ReleaseIndexerError",
    "ArchiveAcquisitionError",
    "FeedUnavailableError",
    "ReleaseModelError",
    "UnsupportedArchiveError",
    "IndexCommitError",
    "CachePurgeError",
    # Feeds / hashing
    "iter_gzip_lines",
    "iter_text_lines",
    "read_gzip_bytes",
    "compute_checksum",
]
