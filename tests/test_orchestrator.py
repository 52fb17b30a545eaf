"""Tests for import runs end to end."""
import pytest

from release_indexer.feeds import BackpanIndex, PermissionsIndex
from release_indexer.ingestion import ArchiveReleaseModelAdapter, ImportOrchestrator
from release_indexer.locator import ArchiveLocator
from release_indexer.utils.config import ImportConfig
from release_indexer.utils.errors import CachePurgeError, FeedUnavailableError

from conftest import distribution_files


class RecordingPurger:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def purge(self, identities):
        self.calls.append(list(identities))
        if self.error:
            raise self.error
        return [f"dist={identity.distribution}" for identity in identities]


class CountingAdapter(ArchiveReleaseModelAdapter):
    def __init__(self, fail_on=()):
        super().__init__()
        self.loaded = []
        self.fail_on = set(fail_on)

    def load(self, archive_path, identity, status, index):
        self.loaded.append(identity.filename)
        if identity.filename in self.fail_on:
            raise RuntimeError("extraction exploded")
        return super().load(archive_path, identity, status, index)


@pytest.fixture
def make_orchestrator(index, cpan_root, tmp_path):
    def factory(config=None, **kwargs):
        kwargs.setdefault("permissions_loader", PermissionsIndex)
        return ImportOrchestrator(
            index=index,
            config=config or ImportConfig(),
            cpan_root=cpan_root,
            locator=ArchiveLocator(tmp_path / "http"),
            **kwargs,
        )
    return factory


def test_partial_failure_keeps_going(make_orchestrator, make_archive, index):
    archives = [
        make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]), mtime=1000),
        make_archive("AUTHOR", "Bar-1.0", distribution_files("Bar", "1.0", ["Bar"]), mtime=2000),
        make_archive("AUTHOR", "Baz-1.0", distribution_files("Baz", "1.0", ["Baz"]), mtime=3000),
    ]
    adapter = CountingAdapter(fail_on={"Bar-1.0.tar.gz"})
    orchestrator = make_orchestrator(adapter=adapter)

    report = orchestrator.process(archives)

    assert adapter.loaded == ["Foo-1.0.tar.gz", "Bar-1.0.tar.gz", "Baz-1.0.tar.gz"]
    assert report.imported == [str(archives[0]), str(archives[2])]
    assert report.failed == [{"file": str(archives[1]), "error": "extraction exploded"}]
    assert index.count("release", distribution="Foo") == 1
    assert index.count("release", distribution="Bar") == 0
    assert index.count("release", distribution="Baz") == 1


def test_corrupt_archive_is_reported(make_orchestrator, make_archive, cpan_root):
    good = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))
    broken = good.with_name("Broken-1.0.tar.gz")
    broken.write_bytes(b"this is not a tarball")

    report = make_orchestrator().process([broken, good])

    assert [failure["file"] for failure in report.failed] == [str(broken)]
    assert report.imported == [str(good)]
    assert report.success_rate == 50.0


def test_run_locates_and_imports(make_orchestrator, make_archive, cpan_root, index):
    make_archive("AUTHOR", "Foo-Bar-1.00", distribution_files("Foo-Bar", "1.00", ["Foo::Bar", "Foo::Bar::Util"]))

    report = make_orchestrator().run([cpan_root / "authors"])

    assert report.total == 1
    release = index.get("release", "AUTHOR/Foo-Bar-1.00")
    assert release["provides"] == ["Foo::Bar", "Foo::Bar::Util"]
    assert release["abstract"] == "Foo::Bar things"
    assert release["first"] is True
    assert release["status"] == "cpan"
    assert release["checksum_sha256"]

    files = {file["path"]: file for file in index.search("file", release="Foo-Bar-1.00")}
    assert set(files) == {"META.json", "Makefile.PL", "t/basic.t", "lib/Foo/Bar.pm", "lib/Foo/Bar/Util.pm"}
    assert files["lib/Foo/Bar.pm"]["module"][0]["name"] == "Foo::Bar"
    assert not files["t/basic.t"]["indexed"]


def test_skip_already_indexed(make_orchestrator, make_archive):
    archive = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))

    first_adapter = CountingAdapter()
    make_orchestrator(config=ImportConfig(skip=True), adapter=first_adapter).process([archive])
    assert first_adapter.loaded == ["Foo-1.0.tar.gz"]

    second_adapter = CountingAdapter()
    report = make_orchestrator(config=ImportConfig(skip=True), adapter=second_adapter).process([archive])

    assert second_adapter.loaded == []
    assert report.skipped == [str(archive)]
    assert report.imported == []


def test_without_skip_archives_are_reindexed(make_orchestrator, make_archive, index):
    archive = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))

    make_orchestrator().process([archive])
    adapter = CountingAdapter()
    make_orchestrator(adapter=adapter).process([archive])

    assert adapter.loaded == ["Foo-1.0.tar.gz"]
    assert index.count("release", archive="Foo-1.0.tar.gz") == 1


def test_purge_covers_every_archive(make_orchestrator, make_archive):
    archives = [
        make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"])),
        make_archive("OTHER", "Bar-2.0", distribution_files("Bar", "2.0", ["Bar"])),
    ]
    purger = RecordingPurger()
    orchestrator = make_orchestrator(
        config=ImportConfig(skip=True),
        purger=purger,
        adapter=CountingAdapter(fail_on={"Bar-2.0.tar.gz"}),
    )

    orchestrator.process(archives)
    report = orchestrator.process(archives)

    assert len(purger.calls) == 2
    for call in purger.calls:
        assert [(i.author_id, i.distribution) for i in call] == [("AUTHOR", "Foo"), ("OTHER", "Bar")]
    assert report.purged_keys == ["dist=Foo", "dist=Bar"]


def test_purge_failure_does_not_fail_run(make_orchestrator, make_archive):
    archive = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))
    orchestrator = make_orchestrator(purger=RecordingPurger(error=CachePurgeError("CDN down")))

    report = orchestrator.process([archive])

    assert report.imported == [str(archive)]
    assert report.purged_keys == []


def test_missing_backpan_listing_stops_the_run(make_orchestrator, make_archive):
    archive = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))
    adapter = CountingAdapter()
    orchestrator = make_orchestrator(config=ImportConfig(detect_backpan=True), adapter=adapter)

    with pytest.raises(FeedUnavailableError):
        orchestrator.process([archive])
    assert adapter.loaded == []


def test_backpan_status(make_orchestrator, make_archive, index):
    on_mirror = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))
    removed = make_archive("AUTHOR", "Foo-0.9", distribution_files("Foo", "0.9", ["Foo"]))
    orchestrator = make_orchestrator(
        config=ImportConfig(detect_backpan=True),
        backpan_loader=lambda: BackpanIndex(["AUTHOR/Foo-1.0.tar.gz"]),
    )

    orchestrator.process([on_mirror, removed])

    assert index.get("release", "AUTHOR/Foo-1.0")["status"] == "cpan"
    assert index.get("release", "AUTHOR/Foo-0.9")["status"] == "backpan"
    assert {file["status"] for file in index.search("file", release="Foo-0.9")} == {"backpan"}


def test_first_flag_across_versions(make_orchestrator, make_archive, index):
    archives = [
        make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"])),
        make_archive("AUTHOR", "Foo-2.0", distribution_files("Foo", "2.0", ["Foo"])),
    ]

    make_orchestrator().process(archives)

    assert index.get("release", "AUTHOR/Foo-1.0")["first"] is True
    assert index.get("release", "AUTHOR/Foo-2.0")["first"] is False


def test_latest_recomputed_per_release(make_orchestrator, make_archive, index):
    archives = [
        make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"])),
        make_archive("AUTHOR", "Foo-2.0", distribution_files("Foo", "2.0", ["Foo"])),
    ]

    make_orchestrator(config=ImportConfig(latest=True)).process(archives)

    assert index.get("release", "AUTHOR/Foo-2.0")["status"] == "latest"
    assert index.get("release", "AUTHOR/Foo-1.0")["status"] == "cpan"
    assert {file["status"] for file in index.search("file", release="Foo-2.0")} == {"latest"}


def test_latest_failure_is_isolated(make_orchestrator, make_archive, index):
    archives = [
        make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"])),
        make_archive("AUTHOR", "Bar-1.0", distribution_files("Bar", "1.0", ["Bar"])),
    ]

    def latest(distribution):
        if distribution == "Foo":
            raise RuntimeError("latest failed")

    report = make_orchestrator(latest=latest).process(archives)

    assert [failure["file"] for failure in report.failed] == [str(archives[0])]
    assert report.imported == [str(archives[1])]


def test_unauthorized_release(make_orchestrator, make_archive, index):
    archive = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo", "Foo::Stolen"]))
    orchestrator = make_orchestrator(
        permissions_loader=lambda: PermissionsIndex({"Foo::Stolen": ["OWNER"]}),
    )

    orchestrator.process([archive])

    release = index.get("release", "AUTHOR/Foo-1.0")
    assert release["authorized"] is False
    assert release["provides"] == ["Foo"]


def test_archive_outside_author_directory_fails(make_orchestrator, tmp_path):
    stray = tmp_path / "Stray-1.0.tar.gz"
    stray.write_bytes(b"")

    report = make_orchestrator().process([stray])

    assert report.failed[0]["file"] == str(stray)
    assert "Cannot determine the author" in report.failed[0]["error"]
