"""Exception hierarchy for the release import pipeline."""


class ReleaseIndexerError(Exception):
    """Base class for all release_indexer errors."""


class ArchiveAcquisitionError(ReleaseIndexerError):
    """An archive argument could not be resolved or downloaded."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class FeedUnavailableError(ReleaseIndexerError):
    """A required offline data feed does not exist."""

    def __init__(self, path, reason: str = "does not exist"):
        self.path = path
        self.reason = reason
        super().__init__(f"File {path} {reason}")


class ReleaseModelError(ReleaseIndexerError):
    """Extraction of files, modules or metadata from an archive failed."""


class UnsupportedArchiveError(ReleaseModelError):
    """The archive format cannot be read."""


class IndexCommitError(ReleaseIndexerError):
    """A batch of documents could not be written to the search index."""

    def __init__(self, count: int, reason: str):
        self.count = count
        super().__init__(f"Failed to commit {count} documents: {reason}")


class CachePurgeError(ReleaseIndexerError):
    """The CDN rejected or failed a purge request."""


__all__ = [
    "ReleaseIndexerError",
    "ArchiveAcquisitionError",
    "FeedUnavailableError",
    "ReleaseModelError",
    "UnsupportedArchiveError",
    "IndexCommitError",
    "CachePurgeError",
]
