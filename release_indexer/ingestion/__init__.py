"""
Ingestion module for release import orchestration.

Provides:
- Release models extracted from archives (and the adapter interface)
- Document building (associated pod, authorization, provides, first)
- CDN cache purging
- The import orchestrator
"""

from release_indexer.ingestion.release_model import (
    ReleaseModel,
    ReleaseModelAdapter,
    ArchiveReleaseModelAdapter,
    parse_packages,
    parse_pod_name
)
from release_indexer.ingestion.builder import DocumentBuilder, ReleaseAccumulator
from release_indexer.ingestion.purge import (
    CachePurger,
    HttpCachePurger,
    LoggingCachePurger,
    create_purger,
    surrogate_keys
)
from release_indexer.ingestion.orchestrator import ImportOrchestrator, ImportReport

__all__ = [
    "ReleaseModel",
    "ReleaseModelAdapter",
    "ArchiveReleaseModelAdapter",
    "parse_packages",
    "parse_pod_name",
    "DocumentBuilder",
    "ReleaseAccumulator",
    "CachePurger",
    "HttpCachePurger",
    "LoggingCachePurger",
    "create_purger",
    "surrogate_keys",
    "ImportOrchestrator",
    "ImportReport",
]
