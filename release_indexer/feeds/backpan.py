"""
BackPAN detection.

When indexing from a BackPAN, releases that are no longer on the primary
mirror get the ``backpan`` status. The primary mirror's contents come from
its ``indices/find-ls.gz`` listing.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Iterable, Optional, Set

from release_indexer.utils.compression import iter_gzip_lines
from release_indexer.utils.errors import FeedUnavailableError
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)

FIND_LS_FILE = Path("indices", "find-ls.gz")
BACKPAN_STATUS = "backpan"

_AUTHORS_PATH_RE = re.compile(r"^authors/id/\w+/\w+/(.*)$")


class BackpanIndex:
    """Set of ``AUTHOR/filename`` keys present on the primary mirror."""

    def __init__(self, keys: Optional[Iterable[str]] = None):
        self._keys: Set[str] = set(keys or ())

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self):
        return iter(self._keys)

    @classmethod
    def load(cls, cpan_root: Path) -> "BackpanIndex":
        """
        Read the mirror listing.

        Raises:
            FeedUnavailableError: If the listing does not exist or is not gzip data
        """
        listing = Path(cpan_root) / FIND_LS_FILE
        if not listing.exists():
            logger.error(f"File {listing} does not exist")
            raise FeedUnavailableError(listing)

        logger.info(f"Reading {listing}")
        try:
            lines = list(iter_gzip_lines(listing))
        except OSError as e:
            logger.error(f"File {listing} could not be read: {e}")
            raise FeedUnavailableError(listing, f"could not be read: {e}") from e

        keys = set()
        for line in lines:
            fields = line.split()
            if not fields:
                continue
            match = _AUTHORS_PATH_RE.match(fields[-1])
            if match:
                keys.add(match.group(1))
        return cls(keys)


class StatusResolver:
    """
    Resolves the status of a release from its author and archive filename.

    The backpan index is built on first use, and only when detection is on.
    """

    def __init__(
        self,
        default_status: str = "cpan",
        detect_backpan: bool = False,
        loader: Optional[Callable[[], BackpanIndex]] = None
    ):
        self.default_status = default_status
        self.detect_backpan = detect_backpan
        self._loader = loader
        self._index: Optional[BackpanIndex] = None

    @property
    def backpan_index(self) -> BackpanIndex:
        if self._index is None:
            if self._loader is None:
                raise RuntimeError("No backpan index loader configured")
            self._index = self._loader()
        return self._index

    def detect_status(self, author: str, filename: str) -> str:
        if not self.detect_backpan:
            return self.default_status
        if f"{author}/{filename}" in self.backpan_index:
            return self.default_status
        logger.debug("BackPAN detected")
        return BACKPAN_STATUS
