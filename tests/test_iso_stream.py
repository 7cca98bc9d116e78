import hashlib
import json
import zipfile

import pytest

from wrench.iso_stream import IsoStream, Patch, md5_from_stream, read_patches
from wrench.streams import ArrayStream, StreamFormatError, StreamIOError

ORIGINAL = bytes(range(256)) * 4


@pytest.fixture
def iso_path(tmp_path):
    path = tmp_path / "game.iso"
    path.write_bytes(ORIGINAL)
    return path


def open_iso(iso_path, cache_dir, archive=None, logs=None):
    log = logs.append if logs is not None else None
    return IsoStream("game", iso_path, log=log, archive=archive, cache_dir=cache_dir)


def test_new_project_builds_cache(iso_path, tmp_path):
    logs = []
    with open_iso(iso_path, tmp_path / "cache", logs=logs) as iso:
        assert iso.size() == len(ORIGINAL)
        assert iso.resource_path() == "iso"
        iso.seek(10)
        assert iso.read_n(5) == ORIGINAL[10:15]
        assert iso.tell() == 15
        cache_path = iso.cached_iso_path()
    assert "".join(logs) == "[ISO] Rebuilding cache... DONE!\n"
    assert open(cache_path, "rb").read() == ORIGINAL


def test_write_records_patch_and_leaves_original(iso_path, tmp_path):
    cache_dir = tmp_path / "cache"
    with open_iso(iso_path, cache_dir) as iso:
        iso.seek(4)
        iso.write_n(b"XY")
        iso.seek(4)
        assert iso.read_n(2) == b"XY"
        assert iso.patches == [Patch(4, b"XY", True)]
        meta = json.loads((cache_dir / "game_metadata.json").read_text())
        assert meta["hash"] == iso.hash_patches()
        assert meta["patches"] == [{"offset": 4, "size": 2}]
    assert iso_path.read_bytes() == ORIGINAL


def test_hash_of_no_patches_is_md5_of_nothing(iso_path, tmp_path):
    with open_iso(iso_path, tmp_path / "cache") as iso:
        assert iso.hash_patches() == "d41d8cd98f00b204e9800998ecf8427e"


def test_hash_depends_on_patches(iso_path, tmp_path):
    with open_iso(iso_path, tmp_path / "a") as first:
        first.seek(0)
        first.write_n(b"ab")
        hash_a = first.hash_patches()
    with open_iso(iso_path, tmp_path / "b") as second:
        second.seek(0)
        second.write_n(b"ab")
        assert second.hash_patches() == hash_a
        second.seek(1)
        second.write_n(b"c")
        assert second.hash_patches() != hash_a


def test_save_and_reopen_project(iso_path, tmp_path):
    project = tmp_path / "mod.wrench"
    with open_iso(iso_path, tmp_path / "cache") as iso:
        iso.seek(4)
        iso.write_n(b"XY")
        iso.seek(8)
        iso.write_n(b"hidden", save_to_project=False)
        iso.save_patches(project, {"game_md5": "abc"})

    with zipfile.ZipFile(project) as archive:
        assert archive.read("game_md5") == b"abc"
        assert archive.read("patches/0.bin") == b"XY"
        assert "patches/1.bin" not in archive.namelist()
        patch_list = json.loads(archive.read("patch_list.json"))
        assert patch_list == {
            "patches": [{"data": "patches/0.bin", "offset": 4}],
            "wad_patches": {},
        }
        assert read_patches(archive) == [Patch(4, b"XY")]

        logs = []
        with open_iso(iso_path, tmp_path / "fresh", archive=archive, logs=logs) as reopened:
            reopened.seek(4)
            assert reopened.read_n(2) == b"XY"
            reopened.seek(8)
            assert reopened.read_n(6) == ORIGINAL[8:14]
    assert "".join(logs) == "[ISO] Rebuilding cache... DONE!\n"


def test_read_patches_accepts_path(iso_path, tmp_path):
    project = tmp_path / "mod.wrench"
    with open_iso(iso_path, tmp_path / "cache") as iso:
        iso.seek(2)
        iso.write_n(b"Q")
        iso.save_patches(project)
    assert read_patches(str(project)) == [Patch(2, b"Q")]


def test_valid_cache_is_reused(iso_path, tmp_path):
    cache_dir = tmp_path / "cache"
    project = tmp_path / "mod.wrench"
    with open_iso(iso_path, cache_dir) as iso:
        iso.seek(0)
        iso.write_n(b"Z")
        iso.save_patches(project)
    logs = []
    with zipfile.ZipFile(project) as archive:
        with open_iso(iso_path, cache_dir, archive=archive, logs=logs) as iso:
            iso.seek(0)
            assert iso.read_n(1) == b"Z"
    assert logs == []


def test_stale_cache_is_reverted(iso_path, tmp_path):
    cache_dir = tmp_path / "cache"
    with open_iso(iso_path, cache_dir) as iso:
        iso.seek(100)
        iso.write_n(b"\xff" * 10)
    logs = []
    with open_iso(iso_path, cache_dir, logs=logs) as iso:
        iso.seek(0)
        assert iso.read_n(iso.size()) == ORIGINAL
    assert "".join(logs) == "[ISO] Updating cache... DONE!\n"


def test_read_patches_without_archive():
    assert read_patches(None) == []


def test_read_patches_requires_patch_list(tmp_path):
    project = tmp_path / "broken.wrench"
    with zipfile.ZipFile(project, "w") as archive:
        archive.writestr("game_md5", "abc")
    with zipfile.ZipFile(project) as archive:
        with pytest.raises(StreamFormatError):
            read_patches(archive)


def test_read_patches_requires_referenced_file(tmp_path):
    project = tmp_path / "broken.wrench"
    with zipfile.ZipFile(project, "w") as archive:
        archive.writestr(
            "patch_list.json",
            json.dumps({"patches": [{"offset": 0, "data": "patches/0.bin"}]}),
        )
    with pytest.raises(StreamFormatError):
        read_patches(project)


def test_missing_iso_raises(tmp_path):
    with pytest.raises(StreamIOError):
        IsoStream("game", tmp_path / "missing.iso", cache_dir=tmp_path / "cache")


def test_md5_from_stream_small():
    assert md5_from_stream(ArrayStream(data=b"abc")) == "900150983cd24fb0d6963f7d28e17f72"


def test_md5_from_stream_spans_blocks():
    data = bytes(range(251)) * 40
    st = ArrayStream(data=data)
    st.seek(17)
    assert md5_from_stream(st) == hashlib.md5(data).hexdigest()
    assert st.tell() == len(data)