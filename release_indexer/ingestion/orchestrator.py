"""
Release import orchestration.

Coordinates an import run: archive discovery, skip checks, per-archive
document building with failure isolation, the final index refresh and
the CDN cache purge.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from rich.console import Console
from rich.table import Table

from release_indexer.feeds import BackpanIndex, PermissionsIndex, StatusResolver
from release_indexer.ingestion.builder import DocumentBuilder, ReleaseAccumulator
from release_indexer.ingestion.purge import CachePurger, LoggingCachePurger
from release_indexer.ingestion.release_model import ArchiveReleaseModelAdapter, ReleaseModelAdapter
from release_indexer.locator import ArchiveLocator
from release_indexer.models.identity import ArchiveIdentity, parse_distname
from release_indexer.storage.index import SQLiteSearchIndex
from release_indexer.utils.config import ImportConfig
from release_indexer.utils.errors import CachePurgeError, ReleaseModelError
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)
console = Console(stderr=True)


@dataclass
class ImportReport:
    """Outcome of an import run."""

    archives: List[Path] = field(default_factory=list)
    imported: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)
    purged_keys: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.archives)

    @property
    def success_rate(self) -> float:
        attempted = len(self.imported) + len(self.failed)
        if not attempted:
            return 100.0
        return len(self.imported) / attempted * 100


class ImportOrchestrator:
    """
    Imports release archives into the search index, one at a time.

    Features:
    - Directory, file and URL inputs (via ArchiveLocator)
    - Skipping of releases that are already indexed
    - Per-archive failure isolation
    - Lazily built permissions and BackPAN indexes
    - Optional "latest" recomputation per release
    - One cache purge for all discovered archives

    Example:
        >>> index = SQLiteSearchIndex(Path("./data/release-index.db"))
        >>> orchestrator = ImportOrchestrator(
        ...     index=index,
        ...     config=ImportConfig(skip=True),
        ...     cpan_root=Path("~/CPAN").expanduser(),
        ...     locator=ArchiveLocator(Path("var/tmp/http/authors")),
        ... )
        >>> report = orchestrator.run(["~/CPAN/authors/id/A/AB/ABRAXXA"])
        >>> orchestrator.display_summary(report)
    """

    def __init__(
        self,
        index: SQLiteSearchIndex,
        config: ImportConfig,
        cpan_root: Path,
        locator: ArchiveLocator,
        adapter: Optional[ReleaseModelAdapter] = None,
        purger: Optional[CachePurger] = None,
        latest: Optional[Callable[[str], Any]] = None,
        permissions_loader: Optional[Callable[[], PermissionsIndex]] = None,
        backpan_loader: Optional[Callable[[], BackpanIndex]] = None
    ):
        """
        Initialize orchestrator.

        Args:
            index: Search index receiving the documents
            config: Import options (skip, status, backpan detection, ...)
            cpan_root: Local mirror holding the permissions and listing feeds
            locator: Resolves run arguments into archive paths
            adapter: Release model adapter (default: tar/zip reader)
            purger: CDN purger (default: logging only)
            latest: Latest recompute hook; defaults to the index's own when
                ``config.latest`` is set
            permissions_loader: Builds the permissions index
            backpan_loader: Builds the BackPAN index
        """
        self.index = index
        self.config = config
        self.cpan_root = Path(cpan_root).expanduser()
        self.locator = locator
        self.adapter = adapter or ArchiveReleaseModelAdapter()
        self.purger = purger or LoggingCachePurger()
        if latest is None and config.latest:
            latest = index.recompute_latest
        self.latest = latest
        self._permissions_loader = permissions_loader or (
            lambda: PermissionsIndex.load(self.cpan_root)
        )
        self.status_resolver = StatusResolver(
            default_status=config.status,
            detect_backpan=config.detect_backpan,
            loader=backpan_loader or (lambda: BackpanIndex.load(self.cpan_root)),
        )

    @cached_property
    def permissions(self) -> PermissionsIndex:
        return self._permissions_loader()

    @cached_property
    def builder(self) -> DocumentBuilder:
        return DocumentBuilder(
            permissions=self.permissions,
            latest=self.latest,
            throttle_seconds=self.config.throttle_seconds,
        )

    def detect_status(self, author: str, filename: str) -> str:
        return self.status_resolver.detect_status(author, filename)

    def is_indexed(self, identity: Optional[ArchiveIdentity]) -> bool:
        """True if a release document for this archive and author exists."""
        if identity is None:
            return False
        return self.index.count(
            "release", archive=identity.filename, author=identity.author_id
        ) > 0

    def import_archive(self, archive_path: Path) -> ReleaseAccumulator:
        """
        Extract one archive and build its documents.

        Raises:
            ReleaseModelError: If the archive path has no author directory
        """
        identity = parse_distname(str(archive_path))
        if identity is None:
            raise ReleaseModelError(f"Cannot determine the author of {archive_path}")

        bulk = self.index.bulk(size=self.config.bulk_size)
        model = self.adapter.load(
            archive_path,
            identity,
            self.detect_status(identity.author_id, identity.filename),
            self.index,
        )
        return self.builder.build(model, bulk)

    def run(self, args: Iterable[Union[str, Path]]) -> ImportReport:
        """
        Run a complete import: locate archives, then process them.

        Args:
            args: Directories, archive files and URLs

        Returns:
            Report of imported, skipped and failed archives

        Raises:
            FeedUnavailableError: If BackPAN detection is on and the mirror
                listing is missing
        """
        archives = self.locator.locate(args)
        return self.process(archives)

    def process(self, archives: Sequence[Path]) -> ImportReport:
        """Import ``archives`` in order, then refresh the index and purge caches."""
        start_time = time.time()
        report = ImportReport(archives=list(archives))

        identities = [identity for identity in map(parse_distname, map(str, archives)) if identity]

        # Build the shared indexes before the first archive
        if self.config.detect_backpan:
            logger.debug(f"{len(self.status_resolver.backpan_index)} archives on the primary mirror")
        logger.debug(f"{len(self.permissions)} modules with permissions")

        for archive in archives:
            if self.config.skip and self.is_indexed(parse_distname(str(archive))):
                logger.info(f"Skipping {archive}")
                report.skipped.append(str(archive))
                continue

            try:
                self.import_archive(archive)
            except Exception as e:
                logger.error(f"{archive} {e}")
                report.failed.append({"file": str(archive), "error": str(e) or type(e).__name__})
                continue
            report.imported.append(str(archive))

        self.index.refresh()

        try:
            report.purged_keys = self.purger.purge(identities)
        except CachePurgeError as e:
            logger.error(f"Cache purge failed: {e}")

        report.duration_seconds = time.time() - start_time
        return report

    def display_summary(self, report: ImportReport) -> None:
        """
        Display summary table with Rich formatting.

        Args:
            report: Import report
        """
        table = Table(title="Import Summary")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Archives Found", str(report.total))
        table.add_row("Imported", str(len(report.imported)))
        table.add_row("Skipped", str(len(report.skipped)))
        table.add_row(
            "Failed",
            str(len(report.failed)),
            style="red" if report.failed else "green"
        )
        table.add_row("Purged Keys", str(len(report.purged_keys)))
        table.add_row("Duration", f"{report.duration_seconds:.2f}s")
        table.add_row("Success Rate", f"{report.success_rate:.1f}%")

        console.print(table)

        if report.failed:
            errors = Table(title="Failed Archives")
            errors.add_column("File", style="cyan")
            errors.add_column("Error", style="red")
            for failure in report.failed:
                errors.add_row(failure["file"], failure["error"])
            console.print(errors)
