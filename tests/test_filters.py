from pathlib import Path
import re

from imgmin.filters import DEFAULT_FILTER, Pattern, Predicate, as_filter, filter_files


def paths(*names):
    return [Path("/out") / name for name in names]


def test_pattern_is_case_insensitive():
    file_filter = as_filter(r"\.png$")
    selected = filter_files(paths("a.png", "b.jpg", "c.PNG"), file_filter)
    assert [path.name for path in selected] == ["a.png", "c.PNG"]


def test_default_filter_matches_image_extensions():
    candidates = paths("a.png", "b.JPEG", "c.gif", "d.jpg", "e.bmp", "f.svg", "g.webp", "h.js", "png")
    selected = filter_files(candidates, DEFAULT_FILTER)
    assert [path.name for path in selected] == ["a.png", "b.JPEG", "c.gif", "d.jpg", "e.bmp", "f.svg"]


def test_pattern_matches_against_full_path():
    file_filter = as_filter("/images/")
    selected = filter_files([Path("/out/images/a.png"), Path("/out/css/b.png")], file_filter)
    assert selected == [Path("/out/images/a.png")]


def test_compiled_regex_keeps_its_flags():
    file_filter = as_filter(re.compile(r"\.png$"))
    assert isinstance(file_filter, Pattern)
    selected = filter_files(paths("a.png", "c.PNG"), file_filter)
    assert [path.name for path in selected] == ["a.png"]


def test_predicate_filter():
    file_filter = as_filter(lambda path: path.stem.startswith("keep"))
    assert isinstance(file_filter, Predicate)
    selected = filter_files(paths("keep1.png", "drop.png", "keep2.gif"), file_filter)
    assert [path.name for path in selected] == ["keep1.png", "keep2.gif"]


def test_no_filter_passes_everything_in_order():
    candidates = paths("z.txt", "a.png", "m.css")
    assert filter_files(candidates, None) == candidates


def test_unsupported_filter_value_is_permissive():
    assert as_filter(42) is None
    candidates = paths("a.txt", "b.png")
    assert filter_files(candidates, as_filter(42)) == candidates


def test_existing_variant_is_returned_unchanged():
    assert as_filter(DEFAULT_FILTER) is DEFAULT_FILTER


def test_filter_accepts_generators():
    selected = filter_files((path for path in paths("a.png", "b.txt")), DEFAULT_FILTER)
    assert [path.name for path in selected] == ["a.png"]
