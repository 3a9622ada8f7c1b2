import os
import re
import sys
from pathlib import Path

import pytest

from staticstamp.inc.errors import (
    AssetIoError,
    PathEncodingError,
    TableError,
    UnexpectedIoError,
    WalkError,
)
from staticstamp.modules import fingerprint
from staticstamp.modules.fingerprint import (
    dependency_lines,
    dump_table,
    fingerprint_file,
    generate,
    load_table,
    write_table,
)

FINGERPRINT_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")


def test_one_entry_per_regular_file(asset_root: Path):
    table = generate(asset_root)

    assert set(table) == {"style.css", "js/app.js", "img/logo.png"}
    assert all(FINGERPRINT_RE.match(v) for v in table.values())


def test_empty_directories_produce_no_entries(tmp_path: Path):
    (tmp_path / "empty" / "nested").mkdir(parents=True)

    assert dict(generate(tmp_path)) == {}


def test_table_is_read_only(asset_root: Path):
    table = generate(asset_root)

    with pytest.raises(TypeError):
        table["style.css"] = "nope"


def test_generate_is_deterministic(asset_root: Path):
    first = generate(asset_root)
    second = generate(asset_root)

    assert dict(first) == dict(second)
    assert dump_table(first) == dump_table(second)


def test_fingerprint_tracks_content(tmp_path: Path):
    f = tmp_path / "a.txt"
    f.write_text("one")
    before = fingerprint_file(f)

    f.write_text("two")
    assert fingerprint_file(f) != before

    f.write_text("one")
    assert fingerprint_file(f) == before


def test_fingerprint_streams_large_files(tmp_path: Path):
    big = tmp_path / "big.bin"
    big.write_bytes(os.urandom(100_000))
    copy = tmp_path / "copy.bin"
    copy.write_bytes(big.read_bytes())

    assert fingerprint_file(big) == fingerprint_file(copy)


def test_identical_content_different_names_share_fingerprint(tmp_path: Path):
    (tmp_path / "a.css").write_text("same")
    (tmp_path / "b.css").write_text("same")

    table = generate(tmp_path)
    assert table["a.css"] == table["b.css"]


def test_dependencies_cover_every_visited_path(asset_root: Path):
    seen = []
    generate(asset_root, on_dependency=seen.append)

    assert seen[0] == str(asset_root)
    assert str(asset_root / "js") in seen
    assert str(asset_root / "img") in seen
    assert str(asset_root / "js" / "app.js") in seen
    assert str(asset_root / "style.css") in seen
    assert len(seen) == 6


def test_dependency_lines():
    assert dependency_lines(["a", "b/c"]) == "rerun-if-changed=a\nrerun-if-changed=b/c\n"


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
def test_symlinks_are_not_fingerprinted(tmp_path: Path):
    root = tmp_path / "root"
    root.mkdir()
    (root / "real.txt").write_text("real")
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "x.txt").write_text("x")

    os.symlink(root / "real.txt", root / "alias.txt")
    os.symlink(outside, root / "linked_dir")

    assert set(generate(root)) == {"real.txt"}


def test_missing_root_is_walk_error(tmp_path: Path):
    with pytest.raises(WalkError):
        generate(tmp_path / "nope")


def test_read_failure_aborts_generation(asset_root: Path, monkeypatch):
    def broken_open(*args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr(fingerprint, "open", broken_open, raising=False)

    with pytest.raises(AssetIoError):
        generate(asset_root)


@pytest.mark.skipif(sys.platform != "linux", reason="needs byte-transparent filenames")
def test_non_utf8_name_is_path_encoding_error(tmp_path: Path):
    with open(os.path.join(os.fsencode(tmp_path), b"bad\xff.css"), "wb") as fh:
        fh.write(b"x")

    with pytest.raises(PathEncodingError):
        generate(tmp_path)


def test_write_and_load_table(asset_root: Path, tmp_path: Path):
    table = generate(asset_root)
    out = write_table(table, tmp_path / "build" / "hashes.json")

    assert out.read_text("utf-8") == dump_table(table)
    assert not (tmp_path / "build" / "hashes.json.tmp").exists()

    loaded = load_table(out)
    assert dict(loaded) == dict(table)
    with pytest.raises(TypeError):
        loaded["style.css"] = "nope"


def test_table_file_is_sorted(tmp_path: Path):
    (tmp_path / "b.txt").write_text("b")
    (tmp_path / "a.txt").write_text("a")

    text = dump_table(generate(tmp_path))
    assert text.index('"a.txt"') < text.index('"b.txt"')
    assert text.endswith("}\n")


@pytest.mark.parametrize("content", ["[1, 2]", "{not json", '{"a.css": 3}'])
def test_load_table_rejects_malformed(tmp_path: Path, content: str):
    p = tmp_path / "hashes.json"
    p.write_text(content)

    with pytest.raises(TableError):
        load_table(p)


def test_load_table_missing_file(tmp_path: Path):
    with pytest.raises(TableError):
        load_table(tmp_path / "missing.json")


def test_failed_write_leaves_no_temp_file(asset_root: Path, tmp_path: Path, monkeypatch):
    def broken_replace(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(fingerprint.os, "replace", broken_replace)
    out = tmp_path / "hashes.json"

    with pytest.raises(UnexpectedIoError):
        write_table(generate(asset_root), out)

    assert not out.exists()
    assert not (tmp_path / "hashes.json.tmp").exists()
