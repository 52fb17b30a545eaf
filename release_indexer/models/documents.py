"""
Document models for releases, files and modules.

These are the records handed from the release model to the document builder
and, finally, to the search index. FileRecord and ReleaseDocument are mutable:
the builder sets flags on them in place before they are persisted.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, PrivateAttr

from release_indexer.models.identity import numify_version
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)

PACKAGE_NAME_RE = re.compile(r"^[A-Za-z_]\w*(?:::\w+)*$")

# Files at the top of a distribution that never show up in a search
OTHER_FILES = frozenset({
    "AUTHORS", "Build", "Build.PL", "CHANGES", "CONTRIBUTING", "CONTRIBUTING.md",
    "COPYRIGHT", "Changes", "ChangeLog", "INSTALL", "LICENCE", "LICENSE",
    "MANIFEST", "MANIFEST.SKIP", "META.json", "META.yml", "MYMETA.json",
    "MYMETA.yml", "Makefile", "Makefile.PL", "NEWS", "README", "README.md",
    "README.pod", "SIGNATURE", "TODO", "cpanfile", "dist.ini",
})

DEFAULT_NO_INDEX_DIRECTORIES = (
    "blib", "eg", "example", "examples", "fatlib", "inc", "local", "perl5", "t", "xt",
)


class ModuleRecord(BaseModel):
    """A package declared in a file."""

    name: str
    indexed: bool = True
    authorized: bool = True
    hidden: bool = False
    associated_pod: Optional[str] = None

    def set_associated_pod(
        self,
        file: "FileRecord",
        associated_pod: Mapping[str, Sequence["FileRecord"]]
    ) -> Optional[str]:
        """
        Pick the file documenting this module.

        Preference order: the ``.pod`` named after the module, any ``.pod``,
        the file declaring the module, then whatever else documents it.
        """
        files = associated_pod.get(self.name)
        if not files:
            return None

        mod_path = self.name.replace("::", "/")
        candidates = (
            [f for f in files if f.path.endswith(f"{mod_path}.pod")]
            + [f for f in files if f.path.endswith(".pod")]
            + [f for f in files if f.path == file.path]
            + list(files)
        )
        self.associated_pod = candidates[0].document_id
        return self.associated_pod


class FileRecord(BaseModel):
    """One file inside a release archive."""

    doc_type: ClassVar[str] = "file"

    author: str
    release: str
    distribution: str
    path: str
    status: str = "cpan"
    indexed: bool = True
    authorized: bool = True
    pod_name: Optional[str] = Field(None, description="Module named in the pod NAME section")
    abstract: Optional[str] = None
    module: List[ModuleRecord] = Field(default_factory=list)
    size: int = 0

    _documentation: Optional[str] = PrivateAttr(default=None)
    _documentation_built: bool = PrivateAttr(default=False)

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def document_id(self) -> str:
        return f"{self.author}/{self.release}/{self.path}"

    @property
    def documentation(self) -> Optional[str]:
        """Documentation name, derived lazily from the pod NAME section."""
        if not self._documentation_built:
            self._documentation = self._build_documentation()
            self._documentation_built = True
        return self._documentation

    def _build_documentation(self) -> Optional[str]:
        if not self.pod_name:
            return None
        candidate = self.pod_name.strip().split()[0] if self.pod_name.strip() else ""
        candidate = candidate.strip("\"'`,")
        return candidate if PACKAGE_NAME_RE.match(candidate) else None

    def clear_documentation(self) -> Optional[str]:
        """Return the current documentation name and drop the cached value."""
        value = self.documentation
        self._documentation = None
        self._documentation_built = False
        return value

    @property
    def is_pod_file(self) -> bool:
        return self.path.endswith(".pod")

    def clear_module(self) -> None:
        self.module = []

    def is_in_other_files(self) -> bool:
        return self.path in OTHER_FILES

    def set_indexed(self, meta: "ReleaseMetadata") -> None:
        """Decide whether this file and its modules are indexed."""
        if self.is_in_other_files() or not meta.should_index_file(self.path):
            for module in self.module:
                module.indexed = False
            self.indexed = False
            return

        for module in self.module:
            module.indexed = (
                bool(re.match(r"^[A-Za-z]", module.name))
                and meta.should_index_package(module.name)
                and not module.hidden
            )

        documentation = self.documentation
        if documentation:
            # Pod with no package is indexed; otherwise the pod must
            # document one of the packages in the file
            self.indexed = not self.module or any(
                documentation == module.name for module in self.module
            )

    def set_authorized(self, perms: Mapping[str, Sequence[str]]) -> List[ModuleRecord]:
        """
        Mark modules (and the file) this author has no permission for.

        Returns:
            Modules that are indexed but not authorized
        """
        # perl itself is always authorized
        if self.distribution == "perl":
            return []

        for module in self.module:
            authors = perms.get(module.name)
            if authors and self.author not in authors:
                module.authorized = False

        documentation = self.documentation
        if self.authorized and documentation:
            authors = perms.get(documentation)
            if authors and self.author not in authors:
                self.authorized = False

        return [module for module in self.module if module.indexed and not module.authorized]

    def index_terms(self) -> Dict[str, Any]:
        return {
            "author": self.author,
            "distribution": self.distribution,
            "release": self.release,
            "status": self.status,
        }

    def to_document(self) -> Dict[str, Any]:
        document = self.model_dump()
        document["name"] = self.name
        document["documentation"] = self.documentation
        return document


class NoIndex(BaseModel):
    file: List[str] = Field(default_factory=list)
    directory: List[str] = Field(default_factory=list)
    package: List[str] = Field(default_factory=list)
    namespace: List[str] = Field(default_factory=list)


class ReleaseMetadata(BaseModel):
    """Distribution metadata, as found in META.json."""

    name: str
    version: Optional[str] = None
    abstract: Optional[str] = None
    license: List[str] = Field(default_factory=list)
    no_index: NoIndex = Field(default_factory=NoIndex)

    @classmethod
    def from_meta_json(cls, meta: Dict[str, Any], default_name: str) -> "ReleaseMetadata":
        no_index = meta.get("no_index") or {}
        # META spec 1.x used "dir"
        directories = no_index.get("directory") or no_index.get("dir") or []
        abstract = meta.get("abstract")
        if abstract in ("unknown", "~"):
            abstract = None
        return cls(
            name=meta.get("name") or default_name,
            version=str(meta["version"]) if meta.get("version") is not None else None,
            abstract=abstract,
            license=meta.get("license") if isinstance(meta.get("license"), list) else [],
            no_index=NoIndex(
                file=_as_list(no_index.get("file")),
                directory=_as_list(directories),
                package=_as_list(no_index.get("package")),
                namespace=_as_list(no_index.get("namespace")),
            ),
        )

    def should_index_file(self, path: str) -> bool:
        if path in self.no_index.file:
            return False
        for directory in (*DEFAULT_NO_INDEX_DIRECTORIES, *self.no_index.directory):
            directory = directory.rstrip("/")
            if path == directory or path.startswith(f"{directory}/"):
                return False
        return True

    def should_index_package(self, name: str) -> bool:
        if name in self.no_index.package:
            return False
        return not any(
            name == ns or name.startswith(f"{ns}::") for ns in self.no_index.namespace
        )


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


class ReleaseDocument(BaseModel):
    """
    The release-level document.

    Each ``save()`` writes the whole state known so far to the bound index,
    and is visible to queries immediately.
    """

    doc_type: ClassVar[str] = "release"

    name: str
    distribution: str
    author: str
    archive: str
    version: Optional[str] = None
    version_numified: float = 0.0
    status: str = "cpan"
    maturity: str = "released"
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    abstract: Optional[str] = None
    provides: List[str] = Field(default_factory=list)
    authorized: bool = True
    first: bool = False
    checksum_sha256: Optional[str] = None

    _index: Any = PrivateAttr(default=None)

    def model_post_init(self, __context: Any) -> None:
        if not self.version_numified and self.version:
            self.version_numified = numify_version(self.version)
        if self.version and ("_" in self.version or "TRIAL" in self.version):
            self.maturity = "developer"

    @property
    def document_id(self) -> str:
        return f"{self.author}/{self.name}"

    @property
    def has_abstract(self) -> bool:
        return bool(self.abstract)

    def bind(self, index: Any) -> "ReleaseDocument":
        self._index = index
        return self

    def _require_index(self) -> Any:
        if self._index is None:
            raise RuntimeError(f"Release {self.name} is not bound to an index")
        return self._index

    def save(self) -> None:
        logger.debug(f"Saving release {self.document_id}")
        self._require_index().put(self)

    def set_first(self) -> bool:
        """Recompute whether no earlier version of the distribution is indexed."""
        self.first = not self._require_index().has_earlier_release(
            distribution=self.distribution,
            version_numified=self.version_numified,
            exclude_id=self.document_id,
        )
        return self.first

    def reload_status(self) -> str:
        """Pick up a status changed in the index by someone else (e.g. latest)."""
        stored = self._require_index().get(self.doc_type, self.document_id)
        if stored and stored.get("status"):
            self.status = stored["status"]
        return self.status

    def index_terms(self) -> Dict[str, Any]:
        return {
            "author": self.author,
            "archive": self.archive,
            "distribution": self.distribution,
            "release": self.name,
            "status": self.status,
            "version_numified": self.version_numified,
        }

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
