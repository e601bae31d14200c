"""Tests for file filters and filter chains."""

import os
import time
from pathlib import Path

import pytest

from fswatcher.watch.filters import FileFilter, FilterChain


def make_file(path: Path, size: int = 0) -> Path:
    path.write_bytes(b"x" * size)
    return path


@pytest.fixture
def files(tmp_path):
    return {
        'small_txt': make_file(tmp_path / "small.txt", 2000),
        'small_png': make_file(tmp_path / "small.png", 2000),
        'large_txt': make_file(tmp_path / "large.txt", 10000),
    }


def test_empty_chain_semantics(tmp_path):
    chain = FilterChain()
    for path in [tmp_path / "anything", Path("/does/not/exist"), Path("relative.bin")]:
        assert chain.matches(path) is True
        assert chain.matches_any(path) is False
    assert chain.is_empty
    assert len(chain) == 0


def test_extension_and_size_chain(files):
    chain = FilterChain([
        FileFilter.file_extensions(["txt"]),
        FileFilter.file_size(min_size=1000, max_size=5000),
    ])

    assert chain.matches(files['small_txt'])
    assert not chain.matches(files['small_png'])
    assert not chain.matches(files['large_txt'])
    assert chain.filter(files.values()) == [files['small_txt']]


def test_matches_any_is_or(files):
    chain = FilterChain()
    chain.add(FileFilter.file_extensions(["png"]))
    chain.add(FileFilter.file_size(min_size=5000))

    assert chain.matches_any(files['small_png'])
    assert chain.matches_any(files['large_txt'])
    assert not chain.matches_any(files['small_txt'])
    assert chain.filter_any(files.values()) == [files['small_png'], files['large_txt']]


def test_chain_add_remove_clear():
    chain = FilterChain()
    txt = FileFilter.file_extensions(["txt"])
    chain.add(txt)
    chain.add(FileFilter.files_only())
    assert chain.count == 2

    assert chain.remove(txt) is True
    assert chain.remove(txt) is False
    assert chain.count == 1

    chain.clear()
    assert chain.is_empty


def test_extensions_case_insensitive_and_dot_optional():
    f = FileFilter.file_extensions([".JPG", "png"])
    assert f.matches("photo.jpg")
    assert f.matches("PHOTO.PNG")
    assert not f.matches("photo.gif")
    assert not f.matches("jpg")


def test_file_types():
    images = FileFilter.image_files()
    assert images.matches("a.jpg")
    assert images.matches("a.HEIC")
    assert not images.matches("a.mp4")

    assert FileFilter.video_files().matches("clip.mov")
    assert FileFilter.audio_files().matches("song.flac")
    assert FileFilter.document_files().matches("report.pdf")
    assert FileFilter.file_types(["archive"]).matches("bundle.zip")


def test_file_types_mime():
    assert FileFilter.file_types(["text"]).matches("notes.txt")
    assert FileFilter.file_types(["image/*"]).matches("a.png")
    assert FileFilter.file_types(["image/png"]).matches("a.png")
    assert not FileFilter.file_types(["image/png"]).matches("a.jpg")


def test_file_types_inspect_content(tmp_path):
    disguised = tmp_path / "upload.bin"
    disguised.write_bytes(
        b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
        b"\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde"
    )
    fake = tmp_path / "fake.png"
    fake.write_text("plain words, not pixels\n")

    assert FileFilter.image_files().matches(disguised)
    assert FileFilter.file_types(["image/png"]).matches(disguised)
    assert not FileFilter.file_types(["image/png"]).matches(fake)
    assert FileFilter.file_types(["text"]).matches(fake)


def test_file_name_regex():
    f = FileFilter.file_name(r"^IMG_\d+")
    assert f.matches("/tmp/IMG_0001.jpg")
    assert not f.matches("/tmp/img_0001.jpg")


def test_size_of_missing_file_never_matches(tmp_path):
    assert not FileFilter.file_size(0, 100).matches(tmp_path / "missing")


def test_invalid_size_range():
    with pytest.raises(ValueError):
        FileFilter.file_size(min_size=10, max_size=1)


def test_modified_within(tmp_path):
    fresh = make_file(tmp_path / "fresh.txt")
    stale = make_file(tmp_path / "stale.txt")
    old = time.time() - 3600
    os.utime(stale, (old, old))

    f = FileFilter.modified_within(60)
    assert f.matches(fresh)
    assert not f.matches(stale)
    # stat() failure becomes False
    assert not f.matches(tmp_path / "missing.txt")


def test_directories_and_files_only(tmp_path):
    directory = tmp_path / "sub"
    directory.mkdir()
    file_path = make_file(tmp_path / "f.txt")

    assert FileFilter.directories_only().matches(directory)
    assert not FileFilter.directories_only().matches(file_path)
    assert FileFilter.files_only().matches(file_path)
    assert not FileFilter.files_only().matches(directory)


def test_combinators():
    txt = FileFilter.file_extensions(["txt"])
    report = FileFilter.custom(lambda p: p.stem == "report", "named report")

    assert (txt & report).matches("report.txt")
    assert not (txt & report).matches("notes.txt")
    assert (txt | report).matches("report.pdf")
    assert (~txt).matches("report.pdf")
    assert not txt.not_().matches("a.txt")
    assert txt.and_(report).description == "(extension in ['txt'] and named report)"
