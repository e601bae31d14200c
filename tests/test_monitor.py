"""Integration tests for the multi-root managers."""

import pytest

from fswatcher.watch import (
    DirectoryNotFound,
    FileFilter,
    MultiDirectoryWatcher,
    MultiRecursiveDirectoryWatcher,
    RecursiveWatchOptions,
)
from tests.helpers import Recorder, wait_for


@pytest.fixture
def roots(tmp_path):
    paths = []
    for name in ("one", "two"):
        path = (tmp_path / name)
        path.mkdir()
        paths.append(path.resolve())
    return paths


@pytest.fixture
def multi(fast_config):
    watcher = MultiDirectoryWatcher(fast_config)
    yield watcher
    watcher.stop_all_watching()


@pytest.fixture
def multi_recursive(fast_config):
    watcher = MultiRecursiveDirectoryWatcher(fast_config, RecursiveWatchOptions(max_depth=2))
    yield watcher
    watcher.stop_all_watching()


def test_start_and_stop_roots(multi, roots):
    assert not multi.is_watching
    assert multi.start_watching(roots) is True
    assert multi.watched_directories == roots
    assert multi.is_watching
    assert multi.is_watching_directory(roots[0])

    # Idempotent per root
    assert multi.start_watching_directory(roots[0]) is True
    assert multi.watched_directories == roots

    assert multi.stop_watching(roots[0]) is True
    assert not multi.is_watching_directory(roots[0])
    assert multi.watched_directories == [roots[1]]
    assert multi.stop_watching(roots[0]) is True

    assert multi.stop_all_watching() is True
    assert not multi.is_watching
    assert multi.watched_directories == []


def test_missing_root_reported_and_siblings_kept(multi, roots, tmp_path):
    errors = Recorder()
    multi.on_error = errors

    assert multi.start_watching([roots[0], tmp_path / "missing", roots[1]]) is False

    assert multi.watched_directories == roots
    assert len(errors) == 1
    assert isinstance(errors.items[0], DirectoryNotFound)


def test_notifications_from_every_root(multi, roots):
    filtered = Recorder()
    multi.on_filtered_change = filtered
    multi.add_filter(FileFilter.file_extensions(["txt"]))
    multi.start_watching(roots)

    (roots[0] / "a.txt").write_text("a")
    (roots[1] / "b.txt").write_text("b")
    (roots[1] / "b.bin").write_text("b")

    assert wait_for(lambda: [roots[0] / "a.txt"] in filtered.items
                    and [roots[1] / "b.txt"] in filtered.items)


def test_stopped_root_goes_quiet(multi, roots):
    changes = Recorder()
    multi.on_directory_change = changes
    multi.start_watching(roots)
    multi.stop_watching(roots[0])

    (roots[0] / "quiet.txt").write_text("x")
    (roots[1] / "loud.txt").write_text("x")

    assert wait_for(lambda: roots[1] in changes.items)
    assert roots[0] not in changes.items


def test_recursive_manager_aggregates_trees(multi_recursive, roots):
    (roots[0] / "a" / "b" / "c").mkdir(parents=True)
    (roots[1] / "x").mkdir()

    assert multi_recursive.start_watching(roots)

    assert multi_recursive.watched_directories == roots
    assert multi_recursive.all_watched_directories == sorted([
        roots[0], roots[0] / "a", roots[0] / "a" / "b",
        roots[1], roots[1] / "x",
    ])


def test_recursive_manager_reports_nested_changes(multi_recursive, roots):
    filtered = Recorder()
    multi_recursive.on_filtered_change = filtered
    multi_recursive.start_watching(roots)

    nested = roots[1] / "new"
    nested.mkdir()
    assert wait_for(lambda: nested in multi_recursive.all_watched_directories)

    (nested / "file.txt").write_text("x")
    assert wait_for(lambda: [nested / "file.txt"] in filtered.items)


def test_shared_ignore_list(multi, roots):
    filtered = Recorder()
    multi.on_filtered_change = filtered
    multi.add_predictive_ignore(roots[0] / "out.txt")
    multi.start_watching(roots)

    (roots[0] / "out.txt").write_text("x")
    (roots[0] / "in.txt").write_text("x")

    assert wait_for(lambda: [roots[0] / "in.txt"] in filtered.items)
    assert all(roots[0] / "out.txt" not in batch for batch in filtered.items)
