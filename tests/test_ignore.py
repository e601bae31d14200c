"""Tests for the ignore list and transform prediction."""

import re
import threading
from datetime import date
from pathlib import Path

import pytest

from fswatcher.watch.ignore import FileTransformPredictor, IgnoreList, TransformRule


def test_predictive_ignore_add_remove(tmp_path):
    ignore_list = IgnoreList()
    target = tmp_path / "out.jpg"

    assert not ignore_list.should_ignore(target)
    ignore_list.add_predictive_ignore([target])
    assert ignore_list.should_ignore(target)
    assert ignore_list.predictive_count == 1

    ignore_list.remove_predictive_ignore([target])
    assert not ignore_list.should_ignore(target)


def test_pattern_ignore():
    ignore_list = IgnoreList()
    ignore_list.add_ignore_pattern("*.tmp")

    assert ignore_list.should_ignore("a.tmp")
    assert not ignore_list.should_ignore("a.txt")
    assert ignore_list.should_ignore("/some/dir/b.tmp")

    ignore_list.remove_ignore_pattern("*.tmp")
    assert not ignore_list.should_ignore("a.tmp")


def test_explicit_ignore_accepts_single_path_and_normalizes(tmp_path):
    ignore_list = IgnoreList()
    ignore_list.add_ignored(str(tmp_path / "a" / "b.txt"))

    assert ignore_list.should_ignore(tmp_path / "a" / "." / "b.txt")
    assert ignore_list.should_ignore(tmp_path / "a" / "c" / ".." / "b.txt")
    assert ignore_list.ignored_count == 1

    ignore_list.remove_ignored(tmp_path / "a" / "b.txt")
    assert not ignore_list.should_ignore(tmp_path / "a" / "b.txt")


def test_relative_and_absolute_paths_compare_equal(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    ignore_list = IgnoreList()
    ignore_list.add_ignored("rel.txt")
    assert ignore_list.should_ignore(tmp_path / "rel.txt")


def test_cleanup_drops_missing_explicit_entries(tmp_path):
    existing = tmp_path / "exists.txt"
    existing.write_text("x")
    missing = tmp_path / "missing.txt"
    predicted = tmp_path / "predicted.txt"

    ignore_list = IgnoreList()
    ignore_list.add_ignored([existing, missing])
    ignore_list.add_predictive_ignore(predicted)

    assert ignore_list.cleanup() == 1
    assert ignore_list.should_ignore(existing)
    assert not ignore_list.should_ignore(missing)
    # Predictive entries survive cleanup
    assert ignore_list.should_ignore(predicted)


def test_clear_variants(tmp_path):
    ignore_list = IgnoreList(ignored_files=[tmp_path / "a"], patterns=["*.tmp"])
    ignore_list.add_predictive_ignore(tmp_path / "b")

    ignore_list.clear_patterns()
    assert ignore_list.pattern_count == 0
    assert ignore_list.ignored_count == 1

    ignore_list.clear_predictive()
    assert ignore_list.predictive_count == 0

    ignore_list.clear_ignored()
    assert ignore_list.ignored_count == 0

    ignore_list.add_ignore_patterns(["*.a", "*.b"])
    ignore_list.add_ignored(tmp_path / "c")
    ignore_list.clear()
    assert (ignore_list.ignored_count, ignore_list.predictive_count, ignore_list.pattern_count) == (0, 0, 0)


def test_concurrent_updates(tmp_path):
    ignore_list = IgnoreList()

    def worker(n):
        for i in range(200):
            ignore_list.add_predictive_ignore(tmp_path / f"{n}-{i}")
            ignore_list.should_ignore(tmp_path / f"{n}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert ignore_list.predictive_count == 800


def test_glob_rule_prediction():
    predictor = FileTransformPredictor(TransformRule("*.jpg", "{name}_compressed.jpg"))

    assert predictor.predict_output_files("/photos/photo.jpg") == [Path("/photos/photo_compressed.jpg")]
    assert predictor.predict_output_files("/photos/photo.png") == []


def test_regex_rule_and_template_fields():
    rule = TransformRule(r".*\.png$", "{name}-{date}-{timestamp}.{ext}")
    assert rule.is_regex

    [output] = FileTransformPredictor(rule).predict_output_files("/a/b/icon.png")
    assert output.parent == Path("/a/b")
    match = re.fullmatch(r"icon-(\d{4}-\d{2}-\d{2})-(\d+)\.png", output.name)
    assert match
    assert match.group(1) == date.today().isoformat()


def test_invalid_regex_falls_back_to_glob():
    rule = TransformRule("(broken*", "{name}.out", is_regex=True)
    assert not rule.is_regex
    assert rule.matches("(broken-file")


def test_prefix_regex_rule_prediction():
    rule = TransformRule("IMG_.*", "{name}_small.{ext}")
    assert rule.is_regex

    predictor = FileTransformPredictor(rule)
    assert predictor.predict_output_files("/d/IMG_0001.jpg") == [Path("/d/IMG_0001_small.jpg")]
    assert predictor.predict_output_files("/d/DSC_0001.jpg") == []


def test_literal_regex_is_searched_anywhere_in_name():
    predictor = FileTransformPredictor(TransformRule("raw", "{name}.dng"))

    assert predictor.predict_output_files("/d/photo_raw.cr2") == [Path("/d/photo_raw.dng")]
    assert predictor.predict_output_files("/d/photo.cr2") == []


def test_glob_can_be_forced():
    rule = TransformRule("photo?.jpg", "{name}.png", is_regex=False)
    assert not rule.is_regex
    assert rule.matches("photo1.jpg")
    assert not rule.matches("photo.jpg")
    assert not rule.matches("xphoto1.jpg")


def test_multiple_rules_fire_independently():
    predictor = FileTransformPredictor([
        TransformRule(r".*\.jpg$", "{name}.webp"),
        TransformRule(r".*\.jpg$", "thumb_{name}.jpg"),
        TransformRule(r".*\.mov$", "{name}.mp4"),
    ])

    outputs = predictor.predict_output_files(Path("/p/cat.jpg"))
    assert outputs == [Path("/p/cat.webp"), Path("/p/thumb_cat.jpg")]
    assert predictor.predict_many(["/p/a.jpg", "/p/b.mov"]) == [
        Path("/p/a.webp"), Path("/p/thumb_a.jpg"), Path("/p/b.mp4"),
    ]


@pytest.mark.parametrize("predictor,input_name,expected", [
    (FileTransformPredictor.image_compression(), "a.jpeg", ["a_compressed.jpeg"]),
    (FileTransformPredictor.image_compression("_small"), "a.tif", ["a_small.tif"]),
    (FileTransformPredictor.format_conversion("png", "jpg"), "a.png", ["a.jpg"]),
    (FileTransformPredictor.thumbnail_generation(), "a.webp", ["thumb_a.webp"]),
    (FileTransformPredictor.thumbnail_generation("t_", "128"), "a.gif", ["t_a_128.gif"]),
    (FileTransformPredictor.video_transcoding(), "clip.mkv", ["clip.mp4"]),
    (FileTransformPredictor.document_conversion(), "notes.md", ["notes.html"]),
    (FileTransformPredictor.document_conversion(), "letter.docx", ["letter.pdf"]),
    (FileTransformPredictor.video_transcoding(), "clip.mp4", []),
])
def test_factory_predictors(predictor, input_name, expected):
    outputs = predictor.predict_output_files(Path("/in") / input_name)
    assert [p.name for p in outputs] == expected
