"""
Release models: files, modules and metadata extracted from one archive.

``ReleaseModelAdapter`` is the interface the orchestrator depends on;
``ArchiveReleaseModelAdapter`` is the default implementation, reading
tar and zip archives directly.
"""
from __future__ import annotations

import json
import re
import tarfile
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Iterator, List, Optional, Protocol, Tuple

from release_indexer.models.documents import (
    FileRecord,
    ModuleRecord,
    ReleaseDocument,
    ReleaseMetadata
)
from release_indexer.models.identity import ArchiveIdentity
from release_indexer.utils.errors import ReleaseModelError, UnsupportedArchiveError
from release_indexer.utils.hashing import compute_checksum
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)

MAX_SOURCE_BYTES = 2 * 1024 * 1024
SOURCE_SUFFIXES = (".pm", ".pod", ".pl", ".PL")

_POD_BLOCK_RE = re.compile(r"^=[a-zA-Z].*?(?:^=cut\b[^\n]*$|\Z)", re.MULTILINE | re.DOTALL)
_END_RE = re.compile(r"^__(?:END|DATA)__\s*$", re.MULTILINE)
_PACKAGE_RE = re.compile(r"^[ \t]*package[ \t]+([A-Za-z_][\w]*(?:(?:::|')\w+)*)", re.MULTILINE)
_HIDDEN_PACKAGE_RE = re.compile(r"^[ \t]*package[ \t]*(?:#[^\n]*)?\n\s*([A-Za-z_][\w:]*)", re.MULTILINE)
_POD_NAME_RE = re.compile(r"^=head1[ \t]+NAME[ \t]*\n(.*?)(?=^=|\Z)", re.MULTILINE | re.DOTALL)
_POD_FORMAT_RE = re.compile(r"[A-Z]<+\s*([^>]*?)\s*>+")


@dataclass
class ReleaseModel:
    """Everything extracted from one archive."""

    files: List[FileRecord]
    metadata: ReleaseMetadata
    document: ReleaseDocument

    @property
    def modules(self) -> List[ModuleRecord]:
        return [module for file in self.files for module in file.module]


class ReleaseModelAdapter(Protocol):
    """Extracts a ReleaseModel from an archive."""

    def load(
        self,
        archive_path: Path,
        identity: ArchiveIdentity,
        status: str,
        index: Any
    ) -> ReleaseModel:
        ...


def parse_packages(source: str) -> List[ModuleRecord]:
    """
    Package declarations in Perl source, outside pod and ``__END__``.

    Packages whose name sits on the line after the ``package`` keyword are
    returned with ``hidden=True``.
    """
    code = _END_RE.split(source, maxsplit=1)[0]
    code = _POD_BLOCK_RE.sub("", code)

    modules: List[ModuleRecord] = []
    seen = set()
    for match in _PACKAGE_RE.finditer(code):
        name = match.group(1).replace("'", "::")
        if name not in seen:
            seen.add(name)
            modules.append(ModuleRecord(name=name))
    for match in _HIDDEN_PACKAGE_RE.finditer(code):
        name = match.group(1)
        if name not in seen:
            seen.add(name)
            modules.append(ModuleRecord(name=name, hidden=True))
    return modules


def parse_pod_name(source: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Documented name and abstract from the pod NAME section.

    >>> parse_pod_name("=head1 NAME\\n\\nFoo::Bar - Frobnicate bars\\n\\n=cut\\n")
    ('Foo::Bar', 'Frobnicate bars')
    """
    match = _POD_NAME_RE.search(source)
    if not match:
        return None, None
    text = " ".join(_POD_FORMAT_RE.sub(r"\1", match.group(1)).split())
    if not text:
        return None, None
    parts = re.split(r"\s+-+\s+", text, maxsplit=1)
    name = parts[0].strip() or None
    abstract = parts[1].strip() if len(parts) > 1 else None
    return name, abstract or None


class ArchiveReleaseModelAdapter:
    """
    Reads ``.tar.gz``, ``.tgz``, ``.tar.bz2``, ``.tbz`` and ``.zip`` archives.

    The top-level directory of the archive is stripped from file paths.
    ``META.json`` provides the metadata when present. The release document
    is created and saved as part of loading.
    """

    def __init__(self, max_source_bytes: int = MAX_SOURCE_BYTES):
        self.max_source_bytes = max_source_bytes

    def load(
        self,
        archive_path: Path,
        identity: ArchiveIdentity,
        status: str,
        index: Any
    ) -> ReleaseModel:
        archive_path = Path(archive_path)
        entries = list(self._read_members(archive_path))
        if not entries:
            raise ReleaseModelError(f"{archive_path.name} contains no files")
        entries = _strip_top_directory(entries)

        metadata = self._read_metadata(entries, identity)
        stat = archive_path.stat()
        document = ReleaseDocument(
            name=identity.release_name,
            distribution=identity.distribution,
            author=identity.author_id,
            archive=identity.filename,
            version=identity.version or metadata.version,
            status=status,
            date=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            abstract=metadata.abstract,
            checksum_sha256=compute_checksum(archive_path),
        ).bind(index)
        document.save()

        files = [
            self._file_record(path, size, content, document)
            for path, size, content in entries
        ]
        logger.debug(f"{document.name}: {len(files)} files")
        return ReleaseModel(files=files, metadata=metadata, document=document)

    def _read_members(self, archive_path: Path) -> Iterator[Tuple[str, int, Optional[bytes]]]:
        name = archive_path.name
        try:
            if re.search(r"\.zip$", name, re.IGNORECASE):
                yield from self._read_zip(archive_path)
            elif re.search(r"\.(tar[._-]gz|tgz|tar\.bz2|tbz)$", name):
                yield from self._read_tar(archive_path)
            else:
                raise UnsupportedArchiveError(f"Unsupported archive format: {name}")
        except (tarfile.TarError, zipfile.BadZipFile, EOFError, OSError) as e:
            raise ReleaseModelError(f"Cannot read {name}: {e}") from e

    def _wants_content(self, path: str, size: int) -> bool:
        return size <= self.max_source_bytes and (
            path.endswith(SOURCE_SUFFIXES) or PurePosixPath(path).name == "META.json"
        )

    def _read_tar(self, archive_path: Path) -> Iterator[Tuple[str, int, Optional[bytes]]]:
        with tarfile.open(archive_path, "r:*") as tar:
            for member in tar:
                if not member.isfile():
                    continue
                content = None
                if self._wants_content(member.name, member.size):
                    handle = tar.extractfile(member)
                    content = handle.read() if handle else None
                yield member.name, member.size, content

    def _read_zip(self, archive_path: Path) -> Iterator[Tuple[str, int, Optional[bytes]]]:
        with zipfile.ZipFile(archive_path) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                content = None
                if self._wants_content(info.filename, info.file_size):
                    content = archive.read(info)
                yield info.filename, info.file_size, content

    def _read_metadata(self, entries, identity: ArchiveIdentity) -> ReleaseMetadata:
        for path, _, content in entries:
            if path == "META.json" and content:
                try:
                    meta = json.loads(content.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    logger.warning(f"Ignoring broken META.json in {identity.filename}: {e}")
                    break
                return ReleaseMetadata.from_meta_json(meta, default_name=identity.distribution)
        return ReleaseMetadata(name=identity.distribution, version=identity.version)

    def _file_record(
        self,
        path: str,
        size: int,
        content: Optional[bytes],
        document: ReleaseDocument
    ) -> FileRecord:
        record = FileRecord(
            author=document.author,
            release=document.name,
            distribution=document.distribution,
            path=path,
            status=document.status,
            size=size,
        )
        if content is None or not path.endswith(SOURCE_SUFFIXES):
            return record

        source = content.decode("utf-8", errors="replace")
        record.pod_name, record.abstract = parse_pod_name(source)
        if path.endswith(".pm"):
            record.module = parse_packages(source)
        return record


def _strip_top_directory(entries):
    paths = [PurePosixPath(path) for path, _, _ in entries]
    tops = {p.parts[0] for p in paths if len(p.parts) > 1}
    if len(tops) == 1 and all(len(p.parts) > 1 for p in paths):
        return [
            (str(PurePosixPath(*PurePosixPath(path).parts[1:])), size, content)
            for path, size, content in entries
        ]
    return entries
