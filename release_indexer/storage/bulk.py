"""
Batched document writes.
"""
from __future__ import annotations

from typing import Any, List

from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)


class BulkIndexer:
    """
    Queues documents and writes them to the index in batches.

    A batch is committed as soon as ``size`` documents are queued;
    ``commit()`` flushes whatever is left. A failed commit raises and the
    failed batch is dropped, not retried.

    Example:
        >>> bulk = index.bulk(size=10)
        >>> for file in files:
        ...     bulk.put(file)
        >>> bulk.commit()
    """

    def __init__(self, index: Any, size: int = 10):
        if size < 1:
            raise ValueError("size must be >= 1")
        self.index = index
        self.size = size
        self.committed = 0
        self._queue: List[Any] = []

    def __len__(self) -> int:
        return len(self._queue)

    def put(self, document: Any) -> None:
        self._queue.append(document)
        if len(self._queue) >= self.size:
            self.commit()

    def commit(self) -> int:
        """
        Write all queued documents.

        Returns:
            Number of documents written

        Raises:
            IndexCommitError: If the index rejects the batch
        """
        if not self._queue:
            return 0

        batch, self._queue = self._queue, []
        written = self.index.put_many(batch)
        self.committed += len(batch)
        logger.debug(f"Committed {len(batch)} documents ({self.committed} total)")
        return written
