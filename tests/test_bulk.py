"""Tests for batched writes."""
import pytest

from release_indexer.storage import BulkIndexer
from release_indexer.utils.errors import IndexCommitError


class BatchRecorder:
    def __init__(self, fail=False):
        self.batches = []
        self.fail = fail

    def put_many(self, documents):
        if self.fail:
            raise IndexCommitError(len(documents), "disk full")
        self.batches.append(list(documents))
        return len(documents)


def test_commits_automatically_at_batch_size():
    recorder = BatchRecorder()
    bulk = BulkIndexer(recorder, size=3)

    for number in range(7):
        bulk.put(number)

    assert recorder.batches == [[0, 1, 2], [3, 4, 5]]
    assert len(bulk) == 1

    assert bulk.commit() == 1
    assert recorder.batches[-1] == [6]
    assert bulk.committed == 7


def test_commit_with_empty_queue_is_noop():
    recorder = BatchRecorder()
    bulk = BulkIndexer(recorder)

    assert bulk.commit() == 0
    assert recorder.batches == []


def test_default_batch_size_is_ten():
    assert BulkIndexer(BatchRecorder()).size == 10


def test_failed_commit_surfaces_and_drops_batch():
    bulk = BulkIndexer(BatchRecorder(fail=True), size=5)
    bulk.put("a")
    bulk.put("b")

    with pytest.raises(IndexCommitError):
        bulk.commit()
    assert len(bulk) == 0


def test_invalid_size():
    with pytest.raises(ValueError):
        BulkIndexer(BatchRecorder(), size=0)
