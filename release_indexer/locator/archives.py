"""
Archive discovery.

Resolves the command line arguments of an import run (directories, archive
files and http(s) URLs) into a flat list of local archive paths.
"""
from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from release_indexer.locator.download import MirrorClient
from release_indexer.models.identity import ArchiveIdentity, author_dir, parse_distname
from release_indexer.utils.errors import ArchiveAcquisitionError
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)

ARCHIVE_NAME_RE = re.compile(r"\.(tgz|tbz|tar[._-]gz|tar\.bz2|tar\.Z|zip|7z)$")

# Releases uploaded below a Perl6 folder belong to another ecosystem
EXCLUDED_SEGMENT = "Perl6"


def is_excluded(path: Union[Path, str]) -> bool:
    """True when a directory segment of ``path`` is the excluded folder."""
    parts = Path(path).parts[:-1]
    return EXCLUDED_SEGMENT in parts


class ArchiveLocator:
    """
    Turns heterogeneous inputs into an ordered list of archive files.

    Directory arguments are searched recursively and sorted oldest first;
    files are taken as-is; URLs are downloaded into ``http_cache_dir``.
    Arguments that cannot be resolved are logged and dropped.

    Example:
        >>> locator = ArchiveLocator(Path("var/tmp/http/authors"), age=24)
        >>> archives = locator.locate(["~/CPAN/authors/id/A"])
    """

    def __init__(
        self,
        http_cache_dir: Path,
        age: Optional[int] = None,
        mirror_client: Optional[MirrorClient] = None,
        testing: bool = False,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize locator.

        Args:
            http_cache_dir: Root of the download cache (``.../authors``)
            age: Only pick up directory entries modified within this many hours
            mirror_client: HTTP client for URL arguments (created on demand)
            testing: Keep downloads below a separate ``t`` directory
            clock: Time source for the age filter
        """
        self.http_cache_dir = Path(http_cache_dir)
        self.age = age
        self.testing = testing
        self.clock = clock
        self._mirror_client = mirror_client
        self.errors: List[ArchiveAcquisitionError] = []

    @property
    def mirror_client(self) -> MirrorClient:
        if self._mirror_client is None:
            self._mirror_client = MirrorClient()
        return self._mirror_client

    def locate(self, args: Iterable[Union[str, Path]]) -> List[Path]:
        """
        Resolve every argument, in order.

        Returns:
            Local archive paths with excluded folders filtered out
        """
        self.errors = []
        files: List[Path] = []

        for arg in args:
            arg = str(arg)
            path = Path(arg).expanduser()
            try:
                if path.is_dir():
                    logger.info(f"Looking for archives in {arg}")
                    files.extend(self.find_archives(path))
                elif path.is_file():
                    files.append(path)
                elif re.match(r"^https?://", arg):
                    identity = parse_distname(arg)
                    if identity is None or not identity.author_id:
                        self._unrecognized(arg)
                        continue
                    downloaded = self.download(arg, identity)
                    if downloaded is not None:
                        files.append(downloaded)
                else:
                    self._unrecognized(arg)
            except OSError as e:
                error = ArchiveAcquisitionError(arg, str(e))
                self.errors.append(error)
                logger.error(f"Could not resolve {arg}: {e}")

        files = [f for f in files if not is_excluded(f)]

        if len(files) > 1:
            logger.info(f"{len(files)} archives found")
        return files

    def _unrecognized(self, arg: str) -> None:
        self.errors.append(ArchiveAcquisitionError(arg, "unrecognized argument"))
        logger.error(f"Dunno what {arg} is")

    def find_archives(self, directory: Path) -> List[Path]:
        """Archives below ``directory``, oldest modification time first."""
        cutoff = self.clock() - self.age * 3600 if self.age else None

        found = []
        for candidate in directory.rglob("*"):
            if not ARCHIVE_NAME_RE.search(candidate.name) or not candidate.is_file():
                continue
            mtime = candidate.stat().st_mtime
            if cutoff is not None and mtime < cutoff:
                continue
            found.append((mtime, candidate))

        found.sort(key=lambda item: item[0])
        return [candidate for _, candidate in found]

    def cache_path(self, identity: ArchiveIdentity) -> Path:
        """Deterministic download location for an archive."""
        root = self.http_cache_dir / "t" if self.testing else self.http_cache_dir
        return root / author_dir(identity.author_id) / identity.filename

    def download(self, url: str, identity: ArchiveIdentity) -> Optional[Path]:
        """
        Mirror ``url`` into the cache.

        Returns:
            The cached file, or None when nothing could be downloaded
        """
        destination = self.cache_path(identity)
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Downloading {url}")
        try:
            self.mirror_client.mirror(url, destination)
        except ArchiveAcquisitionError as e:
            self.errors.append(e)
            logger.error(f"Downloading {url} failed: {e.reason}")

        if destination.exists():
            return destination
        return None
