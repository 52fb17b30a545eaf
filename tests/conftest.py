"""Shared fixtures for the release-indexer test suite."""
import io
import json
import os
import tarfile
from pathlib import Path
from typing import Dict, Optional

import pytest

from release_indexer.models import author_dir
from release_indexer.storage import BulkIndexer, SQLiteSearchIndex


def build_archive(
    root: Path,
    author: str,
    name: str,
    files: Dict[str, str],
    mtime: Optional[float] = None,
    subdir: str = ""
) -> Path:
    """Write ``name.tar.gz`` below ``root/authors/id/A/AU/AUTHOR``."""
    directory = root / "authors" / author_dir(author)
    if subdir:
        directory = directory / subdir
    directory.mkdir(parents=True, exist_ok=True)

    archive = directory / f"{name}.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        for path, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(f"{name}/{path}")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

    if mtime is not None:
        os.utime(archive, (mtime, mtime))
    return archive


def module_source(package: str, abstract: Optional[str] = None) -> str:
    source = f"package {package};\n\nuse strict;\n\n1;\n"
    if abstract:
        source += f"\n__END__\n\n=head1 NAME\n\n{package} - {abstract}\n\n=cut\n"
    return source


def distribution_files(dist: str, version: str, packages, abstract: Optional[str] = None) -> Dict[str, str]:
    files = {
        "META.json": json.dumps({"name": dist, "version": version, "abstract": abstract or "unknown"}),
        "Makefile.PL": "use ExtUtils::MakeMaker;\n",
        "t/basic.t": "use Test::More;\nok(1);\ndone_testing;\n",
    }
    for package in packages:
        files[f"lib/{package.replace('::', '/')}.pm"] = module_source(package, f"{package} things")
    return files


@pytest.fixture
def cpan_root(tmp_path) -> Path:
    root = tmp_path / "CPAN"
    root.mkdir()
    return root


@pytest.fixture
def make_archive(cpan_root):
    def factory(author: str, name: str, files: Dict[str, str], **kwargs) -> Path:
        return build_archive(cpan_root, author, name, files, **kwargs)
    return factory


@pytest.fixture
def index(tmp_path) -> SQLiteSearchIndex:
    return SQLiteSearchIndex(tmp_path / "index" / "release-index.db")


class RecordingIndex:
    """In-memory stand-in for the search index that keeps every write."""

    def __init__(self, earlier_release: bool = False):
        self.release_writes = []
        self.file_writes = []
        self.earlier_release = earlier_release

    def put(self, document):
        if document.doc_type == "release":
            self.release_writes.append(document.to_document())
        else:
            self.file_writes.append(document.to_document())

    def put_many(self, documents):
        documents = list(documents)
        for document in documents:
            self.put(document)
        return len(documents)

    def get(self, doc_type, doc_id):
        if doc_type == "release" and self.release_writes:
            return self.release_writes[-1]
        return None

    def has_earlier_release(self, distribution, version_numified, exclude_id=None):
        return self.earlier_release

    def bulk(self, size=10):
        return BulkIndexer(self, size=size)


@pytest.fixture
def recording_index() -> RecordingIndex:
    return RecordingIndex()
