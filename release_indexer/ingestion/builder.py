"""
Document building for one release.

Takes the files, modules and release document extracted from an archive and
turns them into the final documents: associated pod, authorization, the
release's ``provides`` list, its abstract and its ``first`` flag.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from release_indexer.ingestion.release_model import ReleaseModel
from release_indexer.models.documents import FileRecord, ModuleRecord, ReleaseDocument
from release_indexer.storage.bulk import BulkIndexer
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ReleaseAccumulator:
    """What a file traversal collects for the release."""

    provides: List[str] = field(default_factory=list)
    unauthorized: List[ModuleRecord] = field(default_factory=list)

    @property
    def unauthorized_names(self) -> List[str]:
        return [module.name for module in self.unauthorized]


class DocumentBuilder:
    """
    Builds and persists the documents of one release.

    The release document is saved several times while building (abstract,
    provides, authorization, first); each save overwrites the previous one
    and is visible immediately.

    Example:
        >>> builder = DocumentBuilder(permissions=PermissionsIndex.load(cpan_root))
        >>> accumulator = builder.build(model, index.bulk(size=10))
        >>> accumulator.provides
        ['Foo::Bar', 'Foo::Baz']
    """

    def __init__(
        self,
        permissions: Mapping[str, Sequence[str]],
        latest: Optional[Callable[[str], Any]] = None,
        throttle_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize builder.

        Args:
            permissions: Module name -> authorized author ids; when empty,
                authorization is not checked at all
            latest: Called with the distribution name after each release
            throttle_seconds: Pause after each release
            sleep: Sleep function used for throttling
        """
        self.permissions = permissions
        self.latest = latest
        self.throttle_seconds = throttle_seconds
        self.sleep = sleep

    @staticmethod
    def associate_pod(files: Sequence[FileRecord]) -> Dict[str, List[FileRecord]]:
        """
        Group indexed files by the documentation name they provide.

        Clears the cached documentation of each grouped file, so it is
        rebuilt the next time it is read.
        """
        associated_pod: Dict[str, List[FileRecord]] = {}
        for file in files:
            if not (file.indexed and file.documentation):
                continue
            documentation = file.clear_documentation()
            associated_pod.setdefault(documentation, []).append(file)
        return associated_pod

    def index_files(
        self,
        files: Sequence[FileRecord],
        document: ReleaseDocument,
        associated_pod: Mapping[str, Sequence[FileRecord]],
        bulk: BulkIndexer
    ) -> ReleaseAccumulator:
        """
        Resolve modules of each file, queue the file and collect provides.

        The first file carrying an abstract fills in the release abstract
        (when it has none) and saves the release right away.
        """
        accumulator = ReleaseAccumulator()
        check_permissions = len(self.permissions) > 0

        for file in files:
            for module in file.module:
                module.set_associated_pod(file, associated_pod)

            if check_permissions:
                accumulator.unauthorized.extend(file.set_authorized(self.permissions))

            for module in file.module:
                if module.indexed and module.authorized:
                    accumulator.provides.append(module.name)

            if file.is_pod_file:
                file.clear_module()

            logger.debug(f"reindexing file {file.path}")
            bulk.put(file)

            if not document.has_abstract and file.abstract:
                document.abstract = file.abstract
                document.save()

        return accumulator

    def build(self, model: ReleaseModel, bulk: BulkIndexer) -> ReleaseAccumulator:
        """
        Run the whole build for one release.

        Args:
            model: Files, metadata and release document of the archive
            bulk: Batched writer for file documents

        Returns:
            The provides and unauthorized modules collected
        """
        files = model.files
        document = model.document

        for file in files:
            file.set_indexed(model.metadata)

        associated_pod = self.associate_pod(files)

        logger.debug(f"Indexing {len(model.modules)} modules")
        accumulator = self.index_files(files, document, associated_pod, bulk)

        if accumulator.provides:
            document.provides = sorted(accumulator.provides)
            document.save()
        bulk.commit()

        if accumulator.unauthorized:
            logger.info(
                f"release {document.name} contains unauthorized modules: "
                f"{','.join(accumulator.unauthorized_names)}"
            )
            document.authorized = False
            document.save()

        if self.latest is not None:
            self.latest(document.distribution)
            document.reload_status()

        document.set_first()
        document.save()

        if self.throttle_seconds:
            self.sleep(self.throttle_seconds)

        return accumulator
