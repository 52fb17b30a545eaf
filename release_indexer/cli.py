"""release-indexer CLI - imports release archives into the search index."""

import sys
from pathlib import Path

import click

from release_indexer import __version__
from release_indexer.ingestion import ImportOrchestrator, create_purger
from release_indexer.locator import ArchiveLocator, MirrorClient
from release_indexer.storage import SQLiteSearchIndex
from release_indexer.utils import FeedUnavailableError, get_logger, get_settings, set_level

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="release-indexer")
@click.option("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, ...)")
def cli(log_level):
    """Build a searchable index of software release archives."""
    settings = get_settings()
    if not log_level:
        log_level = "DEBUG" if settings.debug else settings.log_level
    set_level(log_level)


@cli.command("import")
@click.argument("sources", nargs=-1, required=True)
@click.option("--skip/--no-skip", default=None, help="Skip already indexed releases")
@click.option("--age", type=int, default=None, help="Index releases no older than x hours")
@click.option("--latest/--no-latest", default=None, help="Recompute 'latest' after each release")
@click.option("--status", default=None, help="Status of the indexed releases (cpan)")
@click.option("--detect-backpan/--no-detect-backpan", default=None, help="Enable when indexing from a backpan")
@click.option("--bulk-size", type=int, default=None, help="Documents per bulk commit (10)")
@click.option("--index", "index_path", type=click.Path(path_type=Path), default=None, help="SQLite index path")
@click.option("--cpan-root", type=click.Path(path_type=Path), default=None, help="Local CPAN mirror root")
def import_command(sources, skip, age, latest, status, detect_backpan, bulk_size, index_path, cpan_root):
    """Index the releases found in SOURCES.

    SOURCES are directories (searched recursively), archive files or
    http(s) URLs below an authors/id/ path.

    EXAMPLES:
      release-indexer import ~/CPAN/authors/id/A
      release-indexer import ~/CPAN/authors/id/A/AB/ABRAXXA/DBIx-Class-0.08127.tar.gz
      release-indexer import ~/CPAN --age 24 --latest
    """
    settings = get_settings()
    overrides = {
        "skip": skip,
        "age": age,
        "latest": latest,
        "status": status,
        "detect_backpan": detect_backpan,
        "bulk_size": bulk_size,
    }
    import_config = settings.importer.model_copy(
        update={key: value for key, value in overrides.items() if value is not None}
    )
    mirror = settings.mirror
    root = cpan_root.expanduser() if cpan_root else mirror.mirror_root

    index = SQLiteSearchIndex(index_path or settings.storage.index_path)
    with MirrorClient(
        user_agent=mirror.user_agent,
        timeout=mirror.timeout,
        max_retries=mirror.max_retries,
    ) as client:
        orchestrator = ImportOrchestrator(
            index=index,
            config=import_config,
            cpan_root=root,
            locator=ArchiveLocator(
                mirror.http_cache_dir,
                age=import_config.age,
                mirror_client=client,
                testing=mirror.testing,
            ),
            purger=create_purger(settings.purge),
        )
        try:
            report = orchestrator.run(sources)
        except FeedUnavailableError as e:
            logger.error(str(e))
            sys.exit(1)

    orchestrator.display_summary(report)


def main():
    cli()


if __name__ == "__main__":
    main()
