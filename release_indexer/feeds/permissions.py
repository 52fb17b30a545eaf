"""
Module permissions index.

Maps module names to the authors allowed to release them, merged from the
mirror's ``06perms.txt`` listing and ``02packages.details.txt.gz`` index.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from release_indexer.utils.compression import iter_gzip_lines, iter_text_lines
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)

PERMS_FILE = Path("modules", "06perms.txt")
PACKAGES_FILE = Path("modules", "02packages.details.txt.gz")

_PACKAGE_LINE_RE = re.compile(r"^(\S+)\s+\S+\s+\S/\S+/([^/\s]+)/")
# "Key: value" lines of the header block at the top of each feed
_HEADER_LINE_RE = re.compile(r"^[\w-]+:\s")


class PermissionsIndex(Mapping):
    """
    Read-only mapping of module name to authorized author ids.

    Author ids keep the order they were first seen in and appear only once.
    An empty index means no permissions data was available at all, in which
    case callers skip authorization checks entirely.
    """

    def __init__(self, authors: Optional[Dict[str, List[str]]] = None):
        self._authors: Dict[str, List[str]] = {}
        for module, ids in (authors or {}).items():
            for author in ids:
                self._add(module, author)

    def _add(self, module: str, author: str) -> None:
        authors = self._authors.setdefault(module, [])
        if author not in authors:
            authors.append(author)

    def __getitem__(self, module: str) -> List[str]:
        return self._authors[module]

    def __iter__(self) -> Iterator[str]:
        return iter(self._authors)

    def __len__(self) -> int:
        return len(self._authors)

    @classmethod
    def load(cls, cpan_root: Path) -> "PermissionsIndex":
        """
        Build the index from a local mirror.

        Missing feeds are logged and contribute nothing.

        Args:
            cpan_root: Mirror root containing the ``modules/`` directory

        Returns:
            PermissionsIndex (possibly empty)
        """
        index = cls()
        index.read_perms(Path(cpan_root) / PERMS_FILE)
        index.read_packages(Path(cpan_root) / PACKAGES_FILE)
        logger.info(f"Permissions loaded for {len(index)} modules")
        return index

    def read_perms(self, path: Path) -> None:
        if not path.exists():
            logger.warning(f"{path} could not be found.")
            return

        logger.debug(f"parsing {path}")
        for line in iter_text_lines(path):
            if _HEADER_LINE_RE.match(line):
                continue
            fields = line.split(",")
            if len(fields) < 3 or not fields[2].strip():
                continue
            self._add(fields[0], fields[1])

    def read_packages(self, path: Path) -> None:
        if not path.exists():
            logger.warning(f"{path} could not be found.")
            return

        logger.debug(f"parsing {path}")
        try:
            lines = list(iter_gzip_lines(path))
        except OSError as e:
            logger.warning(f"{path} could not be read: {e}")
            return

        for line in lines:
            if _HEADER_LINE_RE.match(line):
                continue
            match = _PACKAGE_LINE_RE.match(line)
            if match:
                self._add(match.group(1), match.group(2))
