"""
Archive identity parsing.

Turns an archive path or URL of the form ``.../authors/id/A/AU/AUTHOR/Dist-1.0.tar.gz``
into author, distribution, version and filename.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse


ARCHIVE_EXTENSION_RE = re.compile(
    r"\.(?:tar\.gz|tar\.bz2|tar\.Z|tar[._-]gz|tgz|tbz|zip|7z)$",
    re.IGNORECASE
)

_AUTHOR_ID_PATH_RE = re.compile(
    r"(?:^|/)id/([A-Z])/(\1[A-Z0-9])/(\2[-A-Z0-9]*)/(.+)$"
)
_AUTHOR_PATH_RE = re.compile(
    r"(?:^|/)([A-Z])/(\1[A-Z0-9])/(\2[-A-Z0-9]*)/(.+)$"
)
_DIST_VERSION_RE = re.compile(r"^(.+?)-(v?\d[^-]*(?:-TRIAL\d*)?)$")


@dataclass(frozen=True)
class ArchiveIdentity:
    """Identity of one release archive."""

    author_id: str
    distribution: str
    version: Optional[str]
    filename: str

    @property
    def release_name(self) -> str:
        """Archive basename without its extension, e.g. ``Foo-Bar-1.0``."""
        return strip_archive_extension(PurePosixPath(self.filename).name)


def strip_archive_extension(name: str) -> str:
    return ARCHIVE_EXTENSION_RE.sub("", name)


def distname_info(basename: str) -> Tuple[str, Optional[str]]:
    """
    Split an archive basename into distribution name and version.

    >>> distname_info("Foo-Bar-1.02_01.tar.gz")
    ('Foo-Bar', '1.02_01')
    >>> distname_info("Foo-Bar.tar.gz")
    ('Foo-Bar', None)
    """
    stem = strip_archive_extension(basename)
    match = _DIST_VERSION_RE.match(stem)
    if not match:
        return stem, None
    return match.group(1), match.group(2)


def parse_distname(path_or_url: str) -> Optional[ArchiveIdentity]:
    """
    Parse an archive path or URL.

    Returns None when no ``A/AU/AUTHOR/`` directory can be found, which is
    how callers tell a CPAN-style archive location from anything else.
    """
    text = str(path_or_url)
    if re.match(r"^[a-z][a-z0-9+.-]*://", text, re.IGNORECASE):
        text = unquote(urlparse(text).path)
    text = text.replace("\\", "/")

    match = _AUTHOR_ID_PATH_RE.search(text) or _AUTHOR_PATH_RE.search(text)
    if not match:
        return None

    author_id, filename = match.group(3), match.group(4)
    distribution, version = distname_info(PurePosixPath(filename).name)
    return ArchiveIdentity(
        author_id=author_id,
        distribution=distribution,
        version=version,
        filename=filename,
    )


def author_dir(author_id: str) -> str:
    """
    Mirror directory of an author, relative to ``authors/``.

    >>> author_dir("ABRAXXA")
    'id/A/AB/ABRAXXA'
    """
    author_id = author_id.upper()
    return f"id/{author_id[0]}/{author_id[:2]}/{author_id}"


def numify_version(version: Optional[str]) -> float:
    """
    Numeric form of a version string, used to order releases.

    Dotted versions (``v1.2.3`` or more than one dot) become ``1.002003``;
    underscores and a ``-TRIAL`` suffix are ignored.
    """
    if not version:
        return 0.0

    version = re.sub(r"-TRIAL\d*$", "", version.strip())
    dotted = version.startswith("v") or version.count(".") > 1
    version = version.lstrip("v").replace("_", "" if not dotted else ".")

    if dotted:
        parts = [p for p in version.split(".") if p]
        digits = []
        for part in parts:
            match = re.match(r"\d+", part)
            digits.append(int(match.group(0)) if match else 0)
        if not digits:
            return 0.0
        fraction = "".join(f"{d:03d}" for d in digits[1:])
        return float(f"{digits[0]}.{fraction or '0'}")

    match = re.match(r"\d+(?:\.\d*)?", version)
    if not match:
        return 0.0
    return float(match.group(0))
